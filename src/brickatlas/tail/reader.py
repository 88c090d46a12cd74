"""Incremental reader for the watched log file.

The reader owns the open handle, the byte offset already consumed and the
LineSplitter holding any unterminated fragment. Only content written after
``TailReader.open`` is ever returned: the initial offset is the file size
at startup.

Two shrink cases are handled:
  - Truncation in place (size < offset): rewind to 0, drop the fragment.
  - Replacement (the path now names another file, e.g. rename + create
    rotation): drain what is left in the old handle, then read the new
    file from the beginning.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

from ..exceptions import (
    ConfigurationError,
    TailIOError,
    WatchFileNotFoundError,
    WatchFilePermissionError,
)
from .splitter import LineSplitter

logger = logging.getLogger("brickatlas")


@dataclass(frozen=True)
class TailState:
    """Snapshot of how far the watched file has been consumed."""

    offset: int
    pending_fragment: bytes


def _open_handle(path: Path) -> BinaryIO:
    if not path.exists():
        raise WatchFileNotFoundError(f"Watched file does not exist: {path}")
    if path.is_dir():
        raise ConfigurationError(f"Watched path is a directory, not a file: {path}")
    try:
        return path.open("rb")
    except PermissionError as e:
        raise WatchFilePermissionError(f"Cannot read watched file {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot open watched file {path}: {e}") from e


class TailReader:
    """Reads bytes appended to one file since the last wake-up."""

    def __init__(
        self,
        path: Path,
        handle: BinaryIO,
        offset: int,
        splitter: LineSplitter | None = None,
    ) -> None:
        self._path = path
        self._handle: BinaryIO | None = handle
        self._offset = offset
        self._splitter = splitter or LineSplitter()
        self._resets = 0

    @classmethod
    def open(cls, path: str | Path, splitter: LineSplitter | None = None) -> TailReader:
        """Open ``path`` positioned at its current end.

        Raises WatchFileNotFoundError / WatchFilePermissionError (both
        ConfigurationError) when the file cannot be watched.
        """
        resolved = Path(os.path.abspath(Path(path).expanduser()))
        handle = _open_handle(resolved)
        try:
            offset = handle.seek(0, os.SEEK_END)
        except OSError as e:
            handle.close()
            raise ConfigurationError(f"Cannot seek watched file {resolved}: {e}") from e
        logger.info(f"Tailing {resolved} from byte {offset}")
        return cls(resolved, handle, offset, splitter)

    # ── State ──────────────────────────────────────────────────

    @property
    def path(self) -> Path:
        return self._path

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def is_open(self) -> bool:
        return self._handle is not None

    @property
    def resets(self) -> int:
        """Number of truncation/replacement resets since open."""
        return self._resets

    @property
    def state(self) -> TailState:
        return TailState(offset=self._offset, pending_fragment=self._splitter.pending)

    # ── Reading ────────────────────────────────────────────────

    def read_delta(self) -> bytes:
        """Return the bytes appended since the last call and advance the offset.

        Raises TailIOError when the handle cannot be read.
        """
        if self._handle is None:
            return b""
        try:
            size = os.fstat(self._handle.fileno()).st_size
            if size < self._offset:
                logger.warning(
                    f"{self._path} shrank from {self._offset} to {size} bytes; "
                    "reading it again from the start"
                )
                self._rewind()
            self._handle.seek(self._offset)
            data = self._handle.read()
        except OSError as e:
            raise TailIOError(f"Failed reading {self._path}: {e}") from e
        self._offset += len(data)
        return data

    def read_lines(self) -> list[str]:
        """Read the delta and return the lines it completes, in file order."""
        lines: list[str] = []
        if self._replaced():
            # Lines the writer finished before rotating still count.
            lines.extend(self._splitter.feed(self.read_delta()))
            logger.warning(f"{self._path} was replaced; following the new file")
            try:
                self.reopen()
            except TailIOError as e:
                # Detached until the next change event reopens the path.
                logger.warning(f"Cannot open the new {self._path} yet: {e}")
                return lines
        lines.extend(self._splitter.feed(self.read_delta()))
        return lines

    def follows_path(self) -> bool:
        """True when the open handle is the file the path currently names."""
        if self._handle is None:
            return False
        try:
            return not self._replaced() and os.path.exists(self._path)
        except TailIOError:
            return False

    def reopen(self) -> None:
        """Open the path again and read it from the beginning.

        Raises TailIOError if the file cannot be opened.
        """
        self.close()
        try:
            self._handle = _open_handle(self._path)
        except ConfigurationError as e:
            raise TailIOError(str(e)) from e
        self._rewind()

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def _rewind(self) -> None:
        self._offset = 0
        self._splitter.reset()
        self._resets += 1

    def _replaced(self) -> bool:
        """True when the path no longer names the file behind the open handle."""
        if self._handle is None:
            return False
        try:
            current = os.stat(self._path)
        except OSError:
            # Path gone: keep draining the handle until something replaces it.
            return False
        try:
            opened = os.fstat(self._handle.fileno())
        except OSError as e:
            raise TailIOError(f"Failed to stat open handle for {self._path}: {e}") from e
        return (current.st_ino, current.st_dev) != (opened.st_ino, opened.st_dev)
