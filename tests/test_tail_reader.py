"""Tests for the incremental log file reader."""

from __future__ import annotations

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from brickatlas.exceptions import (
    ConfigurationError,
    TailIOError,
    WatchFileNotFoundError,
    WatchFilePermissionError,
)
from brickatlas.tail.reader import TailReader, TailState


def _append(path: Path, data: bytes) -> None:
    with path.open("ab") as f:
        f.write(data)


@pytest.fixture
def log_file(tmp_path: Path) -> Path:
    path = tmp_path / "Client.txt"
    path.write_bytes(b"")
    return path


class TestOpen:
    def test_missing_file_raises_not_found(self, tmp_path):
        with pytest.raises(WatchFileNotFoundError):
            TailReader.open(tmp_path / "nope.txt")

    def test_not_found_is_configuration_error(self, tmp_path):
        with pytest.raises(ConfigurationError):
            TailReader.open(tmp_path / "nope.txt")

    def test_directory_rejected(self, tmp_path):
        with pytest.raises(ConfigurationError):
            TailReader.open(tmp_path)

    def test_permission_denied(self, log_file):
        with patch.object(Path, "open", side_effect=PermissionError("denied")):
            with pytest.raises(WatchFilePermissionError):
                TailReader.open(log_file)

    def test_starts_at_end_of_file(self, log_file):
        log_file.write_bytes(b"x" * 999 + b"\n")
        reader = TailReader.open(log_file)
        assert reader.offset == 1000
        assert reader.state == TailState(offset=1000, pending_fragment=b"")
        reader.close()

    def test_expands_user(self, log_file, monkeypatch):
        monkeypatch.setenv("HOME", str(log_file.parent))
        reader = TailReader.open("~/Client.txt")
        assert reader.path == log_file
        reader.close()


class TestReadDelta:
    def test_only_content_after_start_is_read(self, log_file):
        """1000 bytes before start are never returned; the next 50 are."""
        log_file.write_bytes(b"You have entered Lioneye's Watch\n".ljust(1000, b"#"))
        reader = TailReader.open(log_file)
        new = b"You have entered Lioneye's Watch\n".rjust(50, b"-")
        _append(log_file, new)

        assert reader.read_delta() == new
        assert reader.offset == 1050
        reader.close()

    def test_fragment_from_before_start_is_not_prepended(self, log_file):
        log_file.write_bytes(b"old line without newline")
        reader = TailReader.open(log_file)
        _append(log_file, b" ...continued\nnew line\n")
        assert reader.read_lines() == [" ...continued", "new line"]
        reader.close()

    def test_zero_byte_wakeup(self, log_file):
        reader = TailReader.open(log_file)
        _append(log_file, b"half a li")
        assert reader.read_lines() == []
        before = reader.state

        assert reader.read_delta() == b""
        assert reader.read_lines() == []
        assert reader.state == before
        assert reader.state.pending_fragment == b"half a li"
        reader.close()

    def test_successive_appends_read_once(self, log_file):
        reader = TailReader.open(log_file)
        _append(log_file, b"first\n")
        assert reader.read_lines() == ["first"]
        _append(log_file, b"second\nthi")
        assert reader.read_lines() == ["second"]
        _append(log_file, b"rd\n")
        assert reader.read_lines() == ["third"]
        assert reader.read_lines() == []
        reader.close()

    def test_truncation_resets_offset_and_fragment(self, log_file):
        log_file.write_bytes(b"a" * 100 + b"\n")
        reader = TailReader.open(log_file)
        _append(log_file, b"dangling")
        reader.read_lines()
        assert reader.state.pending_fragment == b"dangling"

        # Truncate below the recorded offset and write fresh content
        log_file.write_bytes(b"fresh line\n")

        assert reader.read_lines() == ["fresh line"]
        assert reader.offset == len(b"fresh line\n")
        assert reader.state.pending_fragment == b""
        assert reader.resets == 1
        reader.close()

    def test_truncation_to_empty(self, log_file):
        log_file.write_bytes(b"content\n")
        reader = TailReader.open(log_file)
        log_file.write_bytes(b"")
        assert reader.read_delta() == b""
        assert reader.offset == 0
        reader.close()

    def test_read_error_wrapped(self, log_file):
        reader = TailReader.open(log_file)
        with patch("brickatlas.tail.reader.os.fstat", side_effect=OSError("I/O error")):
            with pytest.raises(TailIOError):
                reader.read_delta()
        reader.close()

    def test_closed_reader_reads_nothing(self, log_file):
        reader = TailReader.open(log_file)
        reader.close()
        _append(log_file, b"line\n")
        assert reader.is_open is False
        assert reader.read_lines() == []


@pytest.mark.skipif(os.name == "nt", reason="rename of an open file")
class TestRotation:
    def test_replaced_file_followed_from_start(self, log_file):
        reader = TailReader.open(log_file)
        _append(log_file, b"last old line\n")
        log_file.rename(log_file.with_suffix(".1"))
        log_file.write_bytes(b"first new line\n")

        assert reader.read_lines() == ["last old line", "first new line"]
        assert reader.resets == 1
        reader.close()

    def test_unopenable_replacement_keeps_drained_lines(self, log_file):
        reader = TailReader.open(log_file)
        _append(log_file, b"last old line\n")
        log_file.rename(log_file.with_suffix(".1"))
        log_file.write_bytes(b"first new line\n")

        with patch(
            "brickatlas.tail.reader._open_handle",
            side_effect=WatchFilePermissionError("denied"),
        ):
            assert reader.read_lines() == ["last old line"]
        assert reader.is_open is False

        reader.reopen()
        assert reader.read_lines() == ["first new line"]
        reader.close()

    def test_follows_path(self, log_file):
        reader = TailReader.open(log_file)
        assert reader.follows_path() is True

        log_file.rename(log_file.with_suffix(".1"))
        assert reader.follows_path() is False

        log_file.write_bytes(b"")
        assert reader.follows_path() is False
        reader.read_lines()
        assert reader.follows_path() is True

        reader.close()
        assert reader.follows_path() is False

    def test_path_removed_keeps_reading_handle(self, log_file):
        reader = TailReader.open(log_file)
        _append(log_file, b"written before delete\n")
        rotated = log_file.with_suffix(".1")
        log_file.rename(rotated)
        assert reader.read_lines() == ["written before delete"]
        reader.close()

    def test_reopen_reads_from_beginning(self, log_file):
        log_file.write_bytes(b"existing\n")
        reader = TailReader.open(log_file)
        reader.reopen()
        assert reader.offset == 0
        assert reader.read_lines() == ["existing"]
        reader.close()

    def test_reopen_missing_file_is_io_error(self, log_file):
        reader = TailReader.open(log_file)
        log_file.unlink()
        with pytest.raises(TailIOError):
            reader.reopen()
        assert reader.is_open is False
