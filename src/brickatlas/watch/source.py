"""Filesystem change notifications for the watched file.

A watchdog observer watches the file's directory on its own thread; events
for the watched path are converted to ChangeEvents and handed to the
asyncio loop, which is the single consumer.

Bursts of writes are coalesced: the first Modified event of a burst is
delivered ``coalesce_seconds`` later, carrying how many raw events it
absorbed. Reading happens after delivery, so writes merged into a burst
are still picked up by that single wake-up.
"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Callable
from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path

from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer
from watchdog.observers.polling import PollingObserver

from ..exceptions import WatchRegistrationError

logger = logging.getLogger("brickatlas")


class ChangeKind(str, Enum):
    CREATED = "created"
    MODIFIED = "modified"
    REMOVED = "removed"
    RENAMED = "renamed"


@dataclass(frozen=True)
class ChangeEvent:
    kind: ChangeKind
    path: Path
    dest_path: Path | None = None
    count: int = 1  # raw events merged into this one

    def __str__(self) -> str:
        if self.dest_path:
            return f"{self.kind.value}: {self.path} -> {self.dest_path}"
        return f"{self.kind.value}: {self.path}"


def _abspath(raw: str | bytes) -> Path:
    return Path(os.path.abspath(os.fsdecode(raw)))


class WatchedFileHandler(FileSystemEventHandler):
    """Filters directory events down to the one watched file."""

    def __init__(self, path: Path, deliver: Callable[[ChangeEvent], None]):
        super().__init__()
        self._path = path
        self._deliver = deliver

    def on_any_event(self, event: FileSystemEvent) -> None:
        change = self._convert(event)
        if change is not None:
            self._deliver(change)

    def _convert(self, event: FileSystemEvent) -> ChangeEvent | None:
        if event.is_directory:
            return None
        src = _abspath(event.src_path)

        if isinstance(event, FileMovedEvent):
            dest = _abspath(event.dest_path)
            if src == self._path:
                return ChangeEvent(ChangeKind.RENAMED, src, dest_path=dest)
            if dest == self._path:
                # Something was moved onto the watched path (atomic replace)
                return ChangeEvent(ChangeKind.CREATED, dest)
            return None

        if src != self._path:
            return None
        if isinstance(event, FileModifiedEvent):
            return ChangeEvent(ChangeKind.MODIFIED, src)
        if isinstance(event, FileCreatedEvent):
            return ChangeEvent(ChangeKind.CREATED, src)
        if isinstance(event, FileDeletedEvent):
            return ChangeEvent(ChangeKind.REMOVED, src)
        # opened / closed events carry nothing new
        return None


class FileChangeSource:
    """Coalesced change notifications for one file, consumed with ``get()``."""

    def __init__(
        self,
        path: str | Path,
        coalesce_seconds: float = 1.0,
        use_polling: bool = False,
        poll_interval: float = 1.0,
    ):
        self._path = Path(os.path.abspath(Path(path).expanduser()))
        self._window = coalesce_seconds
        self._use_polling = use_polling
        self._poll_interval = poll_interval

        self._queue: asyncio.Queue[ChangeEvent | None] = asyncio.Queue()
        self._loop: asyncio.AbstractEventLoop | None = None
        self._observer = None
        self._pending: ChangeEvent | None = None
        self._flush_handle: asyncio.TimerHandle | None = None
        self._closed = False

        self.handler = WatchedFileHandler(self._path, self._deliver_threadsafe)

    @property
    def path(self) -> Path:
        return self._path

    def bind(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        """Attach to the event loop that will consume the events."""
        self._loop = loop or asyncio.get_running_loop()

    async def start(self) -> None:
        """Register the watch. Raises WatchRegistrationError."""
        self.bind()
        if self._use_polling:
            observer = PollingObserver(timeout=self._poll_interval)
            logger.debug(f"Using polling observer (interval: {self._poll_interval}s)")
        else:
            observer = Observer()
            logger.debug("Using OS event observer")

        try:
            observer.schedule(self.handler, str(self._path.parent), recursive=False)
            observer.start()
        except Exception as e:
            raise WatchRegistrationError(
                f"Cannot watch {self._path.parent} for changes: {e}"
            ) from e
        self._observer = observer
        logger.info(f"Watching {self._path} (coalescing window {self._window}s)")

    async def get(self) -> ChangeEvent | None:
        """Next change, or None once the source is stopped."""
        return await self._queue.get()

    def stop(self) -> None:
        """Stop the observer and close the channel.

        Must be called from the event loop thread. A pending coalesced
        event is still delivered before the end marker.
        """
        if self._closed:
            return
        self._closed = True
        if self._observer is not None:
            self._observer.stop()
            self._observer.join(timeout=5)
            self._observer = None
        self._flush()
        self._queue.put_nowait(None)

    # ── Observer thread → loop ─────────────────────────────────

    def _deliver_threadsafe(self, change: ChangeEvent) -> None:
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug(f"Dropping {change}: no running loop")
            return
        loop.call_soon_threadsafe(self._on_change, change)

    def _on_change(self, change: ChangeEvent) -> None:
        if self._closed:
            return
        if change.kind is not ChangeKind.MODIFIED:
            # Keep delivery order: the burst before this event goes first.
            self._flush()
            self._queue.put_nowait(change)
            return

        if self._pending is not None:
            self._pending = replace(self._pending, count=self._pending.count + 1)
            return
        self._pending = change
        if self._window <= 0:
            self._flush()
        else:
            self._flush_handle = self._loop.call_later(self._window, self._flush)

    def _flush(self) -> None:
        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None
        if self._pending is not None:
            self._queue.put_nowait(self._pending)
            self._pending = None
