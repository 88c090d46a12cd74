"""ntfy.sh push notification delivery.

ntfy is a free, zero-signup push notification service.  Users install
the ntfy app on their phone, subscribe to a topic, and receive alerts
as push notifications, useful when the game runs on another screen.

Works on: Android, iOS, web browser, desktop.
Docs: https://docs.ntfy.sh/
"""

from __future__ import annotations

import html
import logging
import re
from typing import Optional

import aiohttp

from ..rules.models import Alert, Urgency

logger = logging.getLogger("brickatlas")

# brickatlas urgency → ntfy numeric priority
_NTFY_PRIORITY = {
    Urgency.NORMAL: "3",
    Urgency.CRITICAL: "5",
}

# urgency → ntfy emoji tags
_NTFY_TAGS = {
    Urgency.NORMAL: "scroll",
    Urgency.CRITICAL: "scroll,rotating_light",
}

_BOLD = re.compile(r"</?b>")
_ITALIC = re.compile(r"</?i>")


def to_markdown(body: str) -> str:
    """Convert the alert body's emphasis tags to ntfy Markdown."""
    return html.unescape(_ITALIC.sub("_", _BOLD.sub("**", body)))


class NtfyNotifier:
    """Push notifications via ntfy.sh (or self-hosted ntfy)."""

    def __init__(
        self,
        default_topic: str = "",
        server_url: str = "https://ntfy.sh",
    ):
        self._default_topic = default_topic
        self._server_url = server_url.rstrip("/")
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def enabled(self) -> bool:
        return bool(self._default_topic)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=15)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    async def notify(self, alert: Alert, topic: str | None = None) -> bool:
        """Publish an alert to the topic.  Returns True on success."""
        target_topic = topic or self._default_topic
        if not target_topic:
            return False

        url = f"{self._server_url}/{target_topic}"
        headers = {
            "Title": alert.title,
            "Priority": _NTFY_PRIORITY.get(alert.urgency, "3"),
            "Tags": _NTFY_TAGS.get(alert.urgency, "scroll"),
            "Markdown": "yes",
        }
        message = to_markdown(alert.body)

        session = self._get_session()
        try:
            async with session.post(url, data=message.encode(), headers=headers) as resp:
                ok = resp.status < 400

            if ok:
                logger.info(f"ntfy sent: {alert.title}")
            else:
                logger.warning(f"ntfy failed: HTTP {resp.status}")
            return ok
        except Exception as e:
            logger.warning(f"ntfy error: {e}")
            return False

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session:
            await self._session.close()
            self._session = None
