"""Notification dispatch for matched log lines.

Renders each MatchEvent into an Alert and routes it to every enabled sink:
- "desktop": OS-native desktop notification (macOS / Linux / Windows)
- "ntfy": push notification via ntfy.sh (when a topic is configured)
- "webhook": generic HTTP POST (when a URL is configured)

With no sink enabled the match is only logged.
"""

from __future__ import annotations

__all__ = ["NotificationDispatcher", "render_alert"]

import html
import logging

from ..config import NotificationsConfig
from ..exceptions import NotificationDispatchError
from ..rules.models import Alert, LiteralMatch, MatchEvent
from .desktop import DesktopNotifier, strip_markup
from .ntfy import NtfyNotifier
from .webhook import WebhookNotifier

logger = logging.getLogger("brickatlas")


def _format(template: str, values: dict[str, str], rule_name: str) -> str:
    try:
        return template.format_map(values)
    except (KeyError, IndexError, ValueError) as e:
        logger.warning(f"Rule '{rule_name}': cannot render {template!r} ({e})")
        return template


def render_alert(event: MatchEvent) -> Alert:
    """Fill the rule's title/message templates from the match.

    Captured text is HTML-escaped in the body so it cannot break the
    emphasis markup; the title is plain text.
    """
    if isinstance(event, LiteralMatch):
        raw = {"label": event.label}
    else:
        raw = dict(event.fields)
    raw = {"rule": event.rule.name, "line": event.line, **raw}
    escaped = {key: html.escape(value, quote=False) for key, value in raw.items()}

    if not isinstance(event, LiteralMatch):
        details = "\n".join(
            f"<b>{html.escape(name, quote=False)}</b>: {escaped[name]}"
            for name in event.fields
        )
        raw.setdefault("details", strip_markup(details))
        escaped.setdefault("details", details)

    rule = event.rule
    return Alert(
        title=_format(rule.title, raw, rule.name),
        body=_format(rule.message, escaped, rule.name),
        urgency=rule.urgency,
        timeout_ms=rule.timeout_ms,
        event=event,
    )


class NotificationDispatcher:
    """Routes alerts to every enabled notification sink."""

    def __init__(self, config: NotificationsConfig):
        self._config = config
        self._desktop = (
            DesktopNotifier(app_name=config.desktop_app_name)
            if config.desktop_enabled
            else None
        )
        self._ntfy = NtfyNotifier(
            default_topic=config.ntfy_topic,
            server_url=config.ntfy_server_url,
        )
        self._webhook = WebhookNotifier(default_url=config.webhook_url)

    @property
    def sinks(self) -> list[str]:
        """Names of the sinks every alert is sent to."""
        names = []
        if self._desktop:
            names.append("desktop")
        if self._ntfy.enabled:
            names.append("ntfy")
        if self._webhook.enabled:
            names.append("webhook")
        return names

    async def dispatch(self, event: MatchEvent) -> Alert:
        """Render and send one match.

        Raises NotificationDispatchError when every enabled sink failed.
        """
        alert = render_alert(event)
        logger.info(f"MATCH [{event.rule.name}]: {alert.title} — {strip_markup(alert.body)}")

        failed: list[str] = []
        if self._desktop:
            if not self._desktop.notify(
                alert.title, alert.body, alert.urgency, alert.timeout_ms
            ):
                failed.append("desktop")
        if self._ntfy.enabled and not await self._ntfy.notify(alert):
            failed.append("ntfy")
        if self._webhook.enabled and not await self._webhook.notify(alert):
            failed.append("webhook")

        sinks = self.sinks
        if sinks and len(failed) == len(sinks):
            raise NotificationDispatchError(
                f"Alert for rule '{event.rule.name}' was not delivered "
                f"(failed: {', '.join(failed)})"
            )
        if failed:
            logger.warning(f"Alert for rule '{event.rule.name}' not sent via: {', '.join(failed)}")
        return alert

    async def close(self) -> None:
        """Clean up resources."""
        await self._ntfy.close()
        await self._webhook.close()
