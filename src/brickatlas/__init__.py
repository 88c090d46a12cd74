"""brickatlas — alerts for lines appearing in a live game log."""

__version__ = "0.3.0"

from .exceptions import (
    BrickatlasError,
    ConfigurationError,
    NotificationDispatchError,
    TailIOError,
    WatchFileNotFoundError,
    WatchFilePermissionError,
    WatchRegistrationError,
)

__all__ = [
    "__version__",
    "BrickatlasError",
    "ConfigurationError",
    "WatchFileNotFoundError",
    "WatchFilePermissionError",
    "WatchRegistrationError",
    "TailIOError",
    "NotificationDispatchError",
]
