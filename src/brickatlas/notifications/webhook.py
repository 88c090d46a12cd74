"""Generic webhook notification delivery.

POSTs a structured JSON payload to any URL when a rule matches.
Use this as an escape hatch for integrations that don't have a
dedicated notifier (e.g. Home Assistant, a Discord relay, custom servers).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

import aiohttp

from ..rules.models import Alert, LiteralMatch
from .desktop import strip_markup

logger = logging.getLogger("brickatlas")


class WebhookNotifier:
    """POST structured JSON to any URL on alert."""

    def __init__(self, default_url: str = ""):
        self._default_url = default_url
        self._session: aiohttp.ClientSession | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._default_url)

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None:
            timeout = aiohttp.ClientTimeout(total=15)
            self._session = aiohttp.ClientSession(timeout=timeout)
        return self._session

    def _build_payload(self, alert: Alert) -> dict:
        """Build a structured JSON payload."""
        event = alert.event
        payload: dict = {
            "event": "line_matched",
            "kind": event.kind,
            "rule_name": event.rule.name,
            "title": alert.title,
            "body": strip_markup(alert.body),
            "urgency": alert.urgency.value,
            "line": event.line,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if isinstance(event, LiteralMatch):
            payload["label"] = event.label
        else:
            payload["fields"] = dict(event.fields)

        return payload

    async def notify(self, alert: Alert, url: str = "") -> bool:
        """POST alert JSON to webhook URL.  Returns True on success."""
        target_url = url or self._default_url
        if not target_url:
            return False

        session = self._get_session()
        payload = self._build_payload(alert)

        try:
            async with session.post(target_url, json=payload) as resp:
                ok = resp.status < 400

            if ok:
                logger.info(f"Webhook alert sent: {alert.event.rule.name} → {target_url}")
            else:
                logger.warning(f"Webhook failed: HTTP {resp.status} → {target_url}")
            return ok

        except Exception as e:
            logger.warning(f"Webhook error: {e}")
            return False

    async def close(self) -> None:
        """Close the aiohttp session."""
        if self._session:
            await self._session.close()
            self._session = None
