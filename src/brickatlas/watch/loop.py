"""The watch loop, one per watched file.

State machine:
  IDLE ──start()──▶ WATCHING ──channel closed / fatal error──▶ TERMINATED

Each wake-up runs read → split → evaluate → dispatch synchronously, in
file order, before the next change event is received.

Failure policy:
  - Startup (config, open, watch registration): fatal.
  - Read errors: retried on the next change, fatal after
    ``max_consecutive_io_errors`` in a row.
  - Dispatch errors: logged, or fatal with ``dispatch_errors: fatal``.
  - File removed/renamed: drain what is left, then wait for the path to
    be created again and follow the new file from its first byte.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Protocol

from ..config import WatchConfig
from ..exceptions import NotificationDispatchError, TailIOError
from ..rules.engine import PatternSet
from ..rules.models import MatchEvent
from ..stats import StatsTracker
from ..tail.reader import TailReader
from .source import ChangeEvent, ChangeKind, FileChangeSource

logger = logging.getLogger("brickatlas")


class LoopState(str, Enum):
    IDLE = "idle"
    WATCHING = "watching"
    TERMINATED = "terminated"


class Dispatcher(Protocol):
    async def dispatch(self, event: MatchEvent) -> object: ...


class ChangeSource(Protocol):
    async def start(self) -> None: ...

    async def get(self) -> ChangeEvent | None: ...

    def stop(self) -> None: ...


class WatchLoop:
    """Drives TailReader → PatternSet → dispatcher for every change event."""

    def __init__(
        self,
        config: WatchConfig,
        dispatcher: Dispatcher,
        source: ChangeSource | None = None,
        stats: StatsTracker | None = None,
    ) -> None:
        self._config = config
        self._dispatcher = dispatcher
        self._source = source or FileChangeSource(
            config.path,
            coalesce_seconds=config.coalesce_seconds,
            use_polling=config.use_polling,
            poll_interval=config.poll_interval,
        )
        self._stats = stats or StatsTracker()
        self._state = LoopState.IDLE
        self._patterns: PatternSet | None = None
        self._reader: TailReader | None = None
        self._io_failures = 0

    @property
    def state(self) -> LoopState:
        return self._state

    @property
    def stats(self) -> StatsTracker:
        return self._stats

    @property
    def reader(self) -> TailReader | None:
        return self._reader

    @property
    def patterns(self) -> PatternSet | None:
        return self._patterns

    # ── Lifecycle ──────────────────────────────────────────────

    async def start(self) -> None:
        """Validate rules, open the file at its end and register the watch."""
        if self._state is not LoopState.IDLE:
            raise RuntimeError(f"Cannot start a watch loop that is {self._state.value}")
        try:
            self._patterns = PatternSet.from_config(self._config)
            self._reader = TailReader.open(self._config.path)
            await self._source.start()
        except BaseException:
            self._terminate()
            raise
        self._state = LoopState.WATCHING
        logger.info(
            f"Watching {self._reader.path} with {len(self._patterns)} rule(s)"
        )

    async def run(self) -> None:
        """Process change events until the channel closes or a fatal error."""
        if self._state is LoopState.IDLE:
            await self.start()
        if self._state is LoopState.TERMINATED:
            raise RuntimeError("Watch loop already terminated")
        try:
            while True:
                change = await self._source.get()
                if change is None:
                    logger.info("Change notifications closed; stopping watch")
                    break
                await self.handle_change(change)
        finally:
            self._terminate()

    def stop(self) -> None:
        """Close the change channel; ``run()`` returns after the current wake-up."""
        self._source.stop()

    def _terminate(self) -> None:
        self._state = LoopState.TERMINATED
        self._source.stop()
        if self._reader is not None:
            self._reader.close()

    # ── Wake-ups ───────────────────────────────────────────────

    async def handle_change(self, change: ChangeEvent) -> list[MatchEvent]:
        """React to one change notification; returns the matches it produced."""
        logger.debug(f"Change {change} (x{change.count})")
        reader = self._reader

        if change.kind in (ChangeKind.REMOVED, ChangeKind.RENAMED):
            matches = await self.drain()
            if reader.follows_path():
                # The drain already moved on to the file now at the path.
                logger.info(f"{reader.path} was {change.kind.value}; following the new file")
                return matches
            reader.close()
            logger.warning(
                f"{reader.path} was {change.kind.value}; waiting for it to reappear"
            )
            return matches

        if not reader.is_open and not self._reopen():
            return []
        return await self.drain()

    async def drain(self) -> list[MatchEvent]:
        """Read everything appended since the last wake-up and dispatch matches."""
        reader = self._reader
        resets_before = reader.resets
        try:
            lines = reader.read_lines()
        except TailIOError as e:
            self._io_failures += 1
            self._stats.record_io_error()
            limit = self._config.max_consecutive_io_errors
            if self._io_failures >= limit:
                logger.error(f"Giving up after {self._io_failures} consecutive read failures: {e}")
                raise
            logger.warning(f"{e} (failure {self._io_failures}/{limit}); retrying on next change")
            return []

        self._io_failures = 0
        self._stats.record_reset(reader.resets - resets_before)
        self._stats.record_wakeup(len(lines))

        matches: list[MatchEvent] = []
        for line in lines:
            for event in self._patterns.evaluate(line):
                matches.append(event)
                self._stats.record_match()
                await self._dispatch(event)
        return matches

    def _reopen(self) -> bool:
        try:
            self._reader.reopen()
        except TailIOError as e:
            logger.debug(f"Watched file still unavailable: {e}")
            return False
        self._stats.record_reset()
        logger.info(f"Reopened {self._reader.path}; reading it from the start")
        return True

    async def _dispatch(self, event: MatchEvent) -> None:
        try:
            await self._dispatcher.dispatch(event)
        except NotificationDispatchError as e:
            self._stats.record_alert_failure()
            if self._config.dispatch_errors == "fatal":
                raise
            logger.warning(f"{e}; continuing to watch")
