"""Custom exception hierarchy for brickatlas.

All brickatlas exceptions inherit from BrickatlasError, allowing callers
to catch broad or specific errors:

    try:
        reader = TailReader.open("~/PathOfExile/logs/Client.txt")
    except ConfigurationError as e:
        print(f"Bad setup: {e}")
    except BrickatlasError as e:
        print(f"brickatlas error: {e}")
"""

from __future__ import annotations


class BrickatlasError(Exception):
    """Base exception for all brickatlas errors."""


class ConfigurationError(BrickatlasError):
    """Raised when the watch target or a rule definition is invalid."""


class WatchFileNotFoundError(ConfigurationError):
    """Raised when the watched log file does not exist at startup."""


class WatchFilePermissionError(ConfigurationError):
    """Raised when the watched log file cannot be opened for reading."""


class WatchRegistrationError(BrickatlasError):
    """Raised when the filesystem watch cannot be set up."""


class TailIOError(BrickatlasError):
    """Raised when reading appended bytes from the watched file fails."""


class NotificationDispatchError(BrickatlasError):
    """Raised when no configured notification sink accepted an alert."""
