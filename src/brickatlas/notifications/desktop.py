"""Cross-platform desktop notifications via OS-native commands.

- macOS: terminal-notifier (brew install terminal-notifier), osascript fallback
- Linux: notify-send (libnotify), with urgency, timeout and body markup
- Windows: PowerShell toast (best-effort)

No pip dependencies required.
"""

from __future__ import annotations

import html
import logging
import re
import shutil
import subprocess
import sys

from ..rules.models import Urgency

logger = logging.getLogger("brickatlas")

_MARKUP = re.compile(r"</?(?:b|i|u)>")


class DesktopNotifier:
    """Fire-and-forget desktop notifications."""

    def __init__(self, app_name: str = "brickatlas"):
        self._app_name = app_name
        self._platform = sys.platform
        # On macOS, prefer terminal-notifier (reliable banners) over osascript
        self._has_terminal_notifier = (
            self._platform == "darwin"
            and shutil.which("terminal-notifier") is not None
        )

    def notify(
        self,
        title: str,
        body: str,
        urgency: Urgency = Urgency.NORMAL,
        timeout_ms: int = 5000,
    ) -> bool:
        """Send a desktop notification.  Non-blocking, fire-and-forget.

        Returns True if dispatched, False if the backend failed or the
        platform is unsupported.
        """
        try:
            logger.debug(f"Desktop notification: {title}")
            if self._platform == "darwin":
                self._notify_macos(title, strip_markup(body))
            elif self._platform.startswith("linux"):
                self._notify_linux(title, body, urgency, timeout_ms)
            elif self._platform == "win32":
                self._notify_windows(title, strip_markup(body))
            else:
                logger.debug(
                    f"Desktop notifications unsupported on {self._platform}"
                )
                return False
            return True
        except Exception as e:
            logger.warning(f"Desktop notification error: {e}")
            return False

    # ── Platform backends ──────────────────────────────────────

    def _notify_macos(self, title: str, body: str) -> None:
        if self._has_terminal_notifier:
            subprocess.Popen(
                [
                    "terminal-notifier",
                    "-title", title,
                    "-message", body,
                    "-sound", "default",
                    "-group", self._app_name,
                ],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        else:
            # Fallback to osascript (may not show banner on all systems)
            script = (
                f'display notification "{_escape(body)}" '
                f'with title "{_escape(title)}"'
            )
            subprocess.Popen(
                ["osascript", "-e", script],
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )

    def _notify_linux(
        self, title: str, body: str, urgency: Urgency, timeout_ms: int
    ) -> None:
        subprocess.Popen(
            [
                "notify-send",
                f"--app-name={self._app_name}",
                f"--urgency={urgency.value}",
                f"--expire-time={timeout_ms}",
                title,
                body,
            ],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )

    def _notify_windows(self, title: str, body: str) -> None:
        ps_script = (
            "[Windows.UI.Notifications.ToastNotificationManager, "
            "Windows.UI.Notifications, ContentType = WindowsRuntime] "
            "| Out-Null; "
            "$xml = [Windows.UI.Notifications.ToastNotificationManager]::"
            "GetTemplateContent("
            "[Windows.UI.Notifications.ToastTemplateType]::ToastText02); "
            "$texts = $xml.GetElementsByTagName('text'); "
            f"$texts[0].AppendChild($xml.CreateTextNode('{_escape(title)}'))"
            " | Out-Null; "
            f"$texts[1].AppendChild($xml.CreateTextNode('{_escape(body)}'))"
            " | Out-Null; "
            "$toast = [Windows.UI.Notifications.ToastNotification]::new($xml); "
            "[Windows.UI.Notifications.ToastNotificationManager]::"
            f"CreateToastNotifier('{_escape(self._app_name)}').Show($toast)"
        )
        subprocess.Popen(
            ["powershell", "-Command", ps_script],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )


def strip_markup(text: str) -> str:
    """Remove the inline emphasis tags alert bodies may carry."""
    return html.unescape(_MARKUP.sub("", text))


def _escape(text: str) -> str:
    """Escape quotes and backslashes for shell embedding."""
    return (
        text.replace("\\", "\\\\")
        .replace('"', '\\"')
        .replace("'", "\\'")
    )
