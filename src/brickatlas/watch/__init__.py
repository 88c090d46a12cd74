"""Watching: change notifications and the control loop."""

from .loop import LoopState, WatchLoop
from .source import ChangeEvent, ChangeKind, FileChangeSource

__all__ = [
    "WatchLoop",
    "LoopState",
    "FileChangeSource",
    "ChangeEvent",
    "ChangeKind",
]
