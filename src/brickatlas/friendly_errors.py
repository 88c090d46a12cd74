"""Operator-friendly messages for fatal errors.

Maps brickatlas exceptions to a title, an explanation and actionable
steps, printed by the CLI before it exits.
"""

from __future__ import annotations

import platform
from dataclasses import dataclass

from .exceptions import (
    ConfigurationError,
    NotificationDispatchError,
    TailIOError,
    WatchFileNotFoundError,
    WatchFilePermissionError,
    WatchRegistrationError,
)


@dataclass
class FriendlyError:
    """A fatal error with a fix suggestion."""

    title: str
    message: str
    fix: str


def _client_log_hint() -> str:
    if platform.system() == "Windows":
        return r"C:\Program Files (x86)\Grinding Gear Games\Path of Exile\logs\Client.txt"
    if platform.system() == "Darwin":
        return "~/Library/Caches/com.GGG.PathOfExile/Logs/Client.txt"
    return "~/.steam/steam/steamapps/common/Path of Exile/logs/Client.txt"


def friendly_error(error: Exception) -> FriendlyError:
    """Convert a fatal error to a friendly message."""
    if isinstance(error, WatchFileNotFoundError):
        return FriendlyError(
            title="Log file not found",
            message=str(error),
            fix=(
                "Check the path you passed to 'brickatlas watch'. The game "
                f"client usually writes its log to:\n  {_client_log_hint()}\n"
                "Start the game once so the file exists."
            ),
        )

    if isinstance(error, WatchFilePermissionError):
        return FriendlyError(
            title="Log file not readable",
            message=str(error),
            fix="Make sure your user can read the file (check its permissions).",
        )

    if isinstance(error, ConfigurationError):
        msg = str(error).lower()
        if "yaml" in msg:
            fix = (
                "Check the config file for syntax errors. Common issues:\n"
                "- Missing spaces after colons (use 'key: value' not 'key:value')\n"
                "- Incorrect indentation (use 2 spaces, not tabs)\n"
                "- Regular expressions not wrapped in single quotes"
            )
        else:
            fix = "Run 'brickatlas check' to validate your rules before watching."
        return FriendlyError(
            title="Configuration error",
            message=str(error),
            fix=fix,
        )

    if isinstance(error, WatchRegistrationError):
        fix = "Try again with --polling to poll the file instead of using OS events."
        if platform.system() == "Linux":
            fix += (
                "\nOn Linux this is often the inotify watch limit:\n"
                "  sudo sysctl fs.inotify.max_user_watches=524288"
            )
        return FriendlyError(
            title="Cannot watch the log file",
            message=str(error),
            fix=fix,
        )

    if isinstance(error, TailIOError):
        return FriendlyError(
            title="Reading the log file keeps failing",
            message=str(error),
            fix="Check that the disk is available and restart brickatlas.",
        )

    if isinstance(error, NotificationDispatchError):
        return FriendlyError(
            title="Notifications are failing",
            message=str(error),
            fix=(
                "On Linux install notify-send (libnotify-bin); on macOS "
                "terminal-notifier. Check ntfy_topic / webhook_url, or set "
                "dispatch_errors: log to keep watching."
            ),
        )

    return FriendlyError(
        title="Unexpected error",
        message=f"{type(error).__name__}: {error}",
        fix="Run again with --verbose and check the log output.",
    )


def format_friendly_error(err: FriendlyError) -> str:
    """Format a FriendlyError for display in a terminal."""
    lines = [
        f"Error: {err.title}",
        f"  {err.message}",
        "",
        "How to fix:",
    ]
    for line in err.fix.split("\n"):
        lines.append(f"  {line}")
    return "\n".join(lines)
