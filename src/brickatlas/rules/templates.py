"""Pre-built rules for common Path of Exile ``Client.txt`` lines.

Provides ready-to-use capture rules so users can pick a preset by id
instead of writing the regular expression from scratch. Expressions are
written against the line content after the client's timestamp prefix has
been stripped (``line_prefix: poe``).
"""

from __future__ import annotations

from dataclasses import dataclass

# "2021/01/17 19:45:01 380486187 ac9 [INFO Client 9796] : You have entered ..."
POE_LINE_PREFIX = (
    r"\d{4}/\d{2}/\d{2} \d{2}:\d{2}:\d{2} \d+ (?:\S+ )?\[\w+ Client \d+\] (?:: )?"
)

# Named shortcuts accepted by the ``line_prefix`` and ``literal_template``
# config keys.
LINE_PREFIXES: dict[str, str] = {"poe": POE_LINE_PREFIX}
LITERAL_TEMPLATES: dict[str, str] = {"poe": "You have entered {label}."}


@dataclass(frozen=True)
class RuleTemplate:
    """A pre-defined capture rule."""

    id: str
    name: str
    description: str
    expression: str
    title: str
    message: str
    urgency: str  # "normal" | "critical"


# ── Built-in presets ──────────────────────────────────────────────
TEMPLATES: list[RuleTemplate] = [
    RuleTemplate(
        id="trade-whisper",
        name="Trade Whisper",
        description="Someone whispers to buy a listed item",
        expression=(
            r"@From (?<buyer>.+): Hi, I would like to buy your (?<object>.+) "
            r"listed for (?<price>.+) in (?<league>.+) \((?<location>.+)\)"
        ),
        title="Trade request from {buyer}",
        message="<b>{object}</b> for <b>{price}</b> ({league})",
        urgency="critical",
    ),
    RuleTemplate(
        id="player-joined",
        name="Player Joined",
        description="A player joins your area (hideout visitors, party members)",
        expression=r"(?<player>.+) has joined the area\.",
        title="Player joined",
        message="<b>{player}</b> has joined the area",
        urgency="normal",
    ),
    RuleTemplate(
        id="player-left",
        name="Player Left",
        description="A player leaves your area",
        expression=r"(?<player>.+) has left the area\.",
        title="Player left",
        message="<b>{player}</b> has left the area",
        urgency="normal",
    ),
    RuleTemplate(
        id="level-up",
        name="Level Up",
        description="A character in your area gains a level",
        expression=r"(?<character>.+) \((?<ascendancy>\w+)\) is now level (?<level>\d+)",
        title="Level up",
        message="<b>{character}</b> is now level <b>{level}</b>",
        urgency="normal",
    ),
    RuleTemplate(
        id="afk-on",
        name="AFK Mode",
        description="The client switched AFK mode on",
        expression=r'AFK mode is now ON\. Autoreply "(?<reply>.*)"',
        title="AFK mode is on",
        message="Autoreply: <i>{reply}</i>",
        urgency="normal",
    ),
]

# Index for fast lookup
_TEMPLATES_BY_ID: dict[str, RuleTemplate] = {t.id: t for t in TEMPLATES}


def list_templates() -> list[RuleTemplate]:
    """Return all presets in display order."""
    return list(TEMPLATES)


def get_template(template_id: str) -> RuleTemplate | None:
    """Look up a preset by ID."""
    return _TEMPLATES_BY_ID.get(template_id)
