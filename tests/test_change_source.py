"""Tests for filesystem change notifications and burst coalescing."""

from __future__ import annotations

import asyncio
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from watchdog.events import (
    DirModifiedEvent,
    FileClosedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from brickatlas.exceptions import WatchRegistrationError
from brickatlas.watch.source import (
    ChangeEvent,
    ChangeKind,
    FileChangeSource,
    WatchedFileHandler,
)


@pytest.fixture
def log_file(tmp_path: Path) -> Path:
    path = tmp_path / "Client.txt"
    path.write_bytes(b"")
    return path


def _converter(path: Path) -> WatchedFileHandler:
    return WatchedFileHandler(path, lambda change: None)


class TestWatchedFileHandler:
    def test_modified(self, log_file):
        change = _converter(log_file)._convert(FileModifiedEvent(str(log_file)))
        assert change == ChangeEvent(ChangeKind.MODIFIED, log_file)

    def test_created(self, log_file):
        change = _converter(log_file)._convert(FileCreatedEvent(str(log_file)))
        assert change.kind is ChangeKind.CREATED

    def test_deleted(self, log_file):
        change = _converter(log_file)._convert(FileDeletedEvent(str(log_file)))
        assert change.kind is ChangeKind.REMOVED

    def test_moved_away_is_renamed(self, log_file):
        rotated = log_file.with_suffix(".1")
        change = _converter(log_file)._convert(FileMovedEvent(str(log_file), str(rotated)))
        assert change.kind is ChangeKind.RENAMED
        assert change.dest_path == rotated
        assert str(change) == f"renamed: {log_file} -> {rotated}"

    def test_moved_onto_path_is_created(self, log_file):
        tmp = log_file.with_suffix(".tmp")
        change = _converter(log_file)._convert(FileMovedEvent(str(tmp), str(log_file)))
        assert change == ChangeEvent(ChangeKind.CREATED, log_file)

    def test_other_files_ignored(self, log_file):
        sibling = log_file.with_name("KillTracker.txt")
        handler = _converter(log_file)
        assert handler._convert(FileModifiedEvent(str(sibling))) is None
        assert handler._convert(FileMovedEvent(str(sibling), str(sibling) + ".1")) is None

    def test_directory_events_ignored(self, log_file):
        assert _converter(log_file)._convert(DirModifiedEvent(str(log_file.parent))) is None

    def test_closed_event_ignored(self, log_file):
        assert _converter(log_file)._convert(FileClosedEvent(str(log_file))) is None

    def test_on_any_event_delivers(self, log_file):
        delivered = []
        handler = WatchedFileHandler(log_file, delivered.append)
        handler.on_any_event(FileModifiedEvent(str(log_file)))
        handler.on_any_event(FileModifiedEvent(str(log_file.with_name("other.txt"))))
        assert [c.kind for c in delivered] == [ChangeKind.MODIFIED]


async def _settle() -> None:
    # Let call_soon_threadsafe callbacks run
    for _ in range(3):
        await asyncio.sleep(0)


class TestCoalescing:
    @pytest.mark.asyncio
    async def test_zero_window_delivers_immediately(self, log_file):
        source = FileChangeSource(log_file, coalesce_seconds=0)
        source.bind()
        source.handler.on_any_event(FileModifiedEvent(str(log_file)))

        change = await asyncio.wait_for(source.get(), timeout=1)
        assert change.kind is ChangeKind.MODIFIED
        assert change.count == 1

    @pytest.mark.asyncio
    async def test_burst_merged_into_one_wakeup(self, log_file):
        source = FileChangeSource(log_file, coalesce_seconds=0.05)
        source.bind()
        for _ in range(5):
            source.handler.on_any_event(FileModifiedEvent(str(log_file)))

        change = await asyncio.wait_for(source.get(), timeout=1)
        assert change.count == 5
        await _settle()
        assert source._queue.empty()

    @pytest.mark.asyncio
    async def test_separate_bursts(self, log_file):
        source = FileChangeSource(log_file, coalesce_seconds=0.02)
        source.bind()
        source.handler.on_any_event(FileModifiedEvent(str(log_file)))
        first = await asyncio.wait_for(source.get(), timeout=1)
        source.handler.on_any_event(FileModifiedEvent(str(log_file)))
        second = await asyncio.wait_for(source.get(), timeout=1)
        assert first.count == second.count == 1

    @pytest.mark.asyncio
    async def test_pending_burst_delivered_before_removal(self, log_file):
        source = FileChangeSource(log_file, coalesce_seconds=10)
        source.bind()
        source.handler.on_any_event(FileModifiedEvent(str(log_file)))
        source.handler.on_any_event(FileModifiedEvent(str(log_file)))
        source.handler.on_any_event(FileDeletedEvent(str(log_file)))

        first = await asyncio.wait_for(source.get(), timeout=1)
        second = await asyncio.wait_for(source.get(), timeout=1)
        assert (first.kind, first.count) == (ChangeKind.MODIFIED, 2)
        assert second.kind is ChangeKind.REMOVED

    @pytest.mark.asyncio
    async def test_stop_flushes_then_closes(self, log_file):
        source = FileChangeSource(log_file, coalesce_seconds=10)
        source.bind()
        source.handler.on_any_event(FileModifiedEvent(str(log_file)))
        await _settle()

        source.stop()
        source.stop()

        assert (await source.get()).kind is ChangeKind.MODIFIED
        assert await source.get() is None

    @pytest.mark.asyncio
    async def test_events_after_stop_dropped(self, log_file):
        source = FileChangeSource(log_file, coalesce_seconds=0)
        source.bind()
        source.stop()
        source.handler.on_any_event(FileModifiedEvent(str(log_file)))
        await _settle()
        assert await source.get() is None
        assert source._queue.empty()

    def test_unbound_source_drops_events(self, log_file):
        source = FileChangeSource(log_file)
        source.handler.on_any_event(FileModifiedEvent(str(log_file)))
        assert source._queue.empty()


class TestObserver:
    @pytest.mark.asyncio
    async def test_polling_observer_reports_appends(self, log_file):
        source = FileChangeSource(
            log_file, coalesce_seconds=0, use_polling=True, poll_interval=0.1
        )
        await source.start()
        try:
            await asyncio.sleep(0.3)
            with log_file.open("ab") as f:
                f.write(b"You have entered Oriath\n")
            change = await asyncio.wait_for(source.get(), timeout=5)
            assert change.kind is ChangeKind.MODIFIED
            assert change.path == log_file
        finally:
            source.stop()

    @pytest.mark.asyncio
    async def test_registration_failure(self, log_file):
        observer = MagicMock()
        observer.schedule.side_effect = OSError("inotify watch limit reached")
        with patch("brickatlas.watch.source.Observer", return_value=observer):
            source = FileChangeSource(log_file)
            with pytest.raises(WatchRegistrationError, match="inotify"):
                await source.start()
