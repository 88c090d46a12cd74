"""Rule engine: compile configured rules once, evaluate them per line."""

from __future__ import annotations

import re
import string
from collections.abc import Sequence
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from ..exceptions import ConfigurationError
from .models import AlertSpec, LiteralMatch, MatchEvent, PatternMatch
from .templates import LINE_PREFIXES, LITERAL_TEMPLATES

if TYPE_CHECKING:
    from ..config import LiteralRuleConfig, PatternRuleConfig, WatchConfig

# "(?<name>" as written for PCRE/.NET, but not the "(?<=" / "(?<!" lookbehinds
_PCRE_NAMED_GROUP = re.compile(r"\(\?<(?![=!])")

# Placeholders every alert template may use
_COMMON_KEYS = frozenset({"rule", "line"})
_RESERVED_FIELDS = _COMMON_KEYS | {"details"}


@dataclass(frozen=True)
class LiteralRule:
    label: str
    expected: str
    alert: AlertSpec

    def match(self, content: str, line: str) -> LiteralMatch | None:
        if content != self.expected:
            return None
        return LiteralMatch(rule=self.alert, label=self.label, line=line)


@dataclass(frozen=True)
class PatternRule:
    regex: re.Pattern
    fields: tuple[str, ...]
    alert: AlertSpec

    def match(self, content: str, line: str) -> PatternMatch | None:
        m = self.regex.fullmatch(content)
        if m is None:
            return None
        # A group inside an optional branch may not take part in the match.
        captured = {name: m.group(name) or "" for name in self.fields}
        return PatternMatch(rule=self.alert, fields=captured, line=line)


CompiledRule = Union[LiteralRule, PatternRule]


def normalize_expression(expression: str) -> str:
    """Rewrite ``(?<name>...)`` groups into Python's ``(?P<name>...)``."""
    return _PCRE_NAMED_GROUP.sub("(?P<", expression)


def _placeholders(template: str, rule_name: str) -> set[str]:
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as e:
        raise ConfigurationError(
            f"Rule '{rule_name}': malformed alert template {template!r}: {e}"
        ) from e
    names = set()
    for _, field_name, _, _ in parsed:
        if field_name is None:
            continue
        names.add(re.split(r"[.\[]", field_name, maxsplit=1)[0])
    return names


def _check_templates(alert: AlertSpec, allowed: set[str] | frozenset[str]) -> None:
    for template in (alert.title, alert.message):
        unknown = _placeholders(template, alert.name) - set(allowed)
        if unknown:
            raise ConfigurationError(
                f"Rule '{alert.name}': alert template {template!r} uses unknown "
                f"placeholder(s) {sorted(unknown)}; available: {sorted(allowed)}"
            )


def build_literal_rule(cfg: LiteralRuleConfig, default_template: str) -> LiteralRule:
    template = cfg.template or default_template
    template = LITERAL_TEMPLATES.get(template, template)
    if "{label}" not in template:
        raise ConfigurationError(
            f"Literal template {template!r} must contain the '{{label}}' placeholder"
        )
    alert = AlertSpec(
        name=cfg.name or cfg.label,
        title=cfg.title,
        message=cfg.message,
        urgency=cfg.urgency,
        timeout_ms=cfg.timeout_ms,
    )
    _check_templates(alert, _COMMON_KEYS | {"label"})
    return LiteralRule(
        label=cfg.label,
        expected=template.replace("{label}", cfg.label),
        alert=alert,
    )


def build_pattern_rule(cfg: PatternRuleConfig, index: int) -> PatternRule:
    name = cfg.name or f"pattern-{index}"
    try:
        regex = re.compile(normalize_expression(cfg.expression))
    except re.error as e:
        raise ConfigurationError(
            f"Rule '{name}': invalid expression {cfg.expression!r}: {e}"
        ) from e

    groups = tuple(sorted(regex.groupindex, key=regex.groupindex.__getitem__))
    fields = cfg.fields or groups
    missing = [f for f in fields if f not in regex.groupindex]
    if missing:
        raise ConfigurationError(
            f"Rule '{name}': expression has no group(s) named {missing}"
        )
    reserved = sorted(set(fields) & _RESERVED_FIELDS)
    if reserved:
        raise ConfigurationError(
            f"Rule '{name}': group name(s) {reserved} clash with built-in "
            f"placeholders {sorted(_RESERVED_FIELDS)}; rename the group(s)"
        )

    alert = AlertSpec(
        name=name,
        title=cfg.title,
        message=cfg.message,
        urgency=cfg.urgency,
        timeout_ms=cfg.timeout_ms,
    )
    _check_templates(alert, _COMMON_KEYS | {"details"} | set(fields))
    return PatternRule(regex=regex, fields=tuple(fields), alert=alert)


def compile_line_prefix(value: str) -> re.Pattern | None:
    if not value:
        return None
    expression = LINE_PREFIXES.get(value, value)
    try:
        return re.compile(expression)
    except re.error as e:
        raise ConfigurationError(f"Invalid line_prefix {value!r}: {e}") from e


class PatternSet:
    """Ordered, immutable set of compiled rules.

    Every rule is tried against every line: a line may satisfy several
    rules and yields one event per satisfied rule, in configuration order.
    """

    def __init__(
        self,
        rules: Sequence[CompiledRule],
        line_prefix: re.Pattern | None = None,
    ) -> None:
        self._rules = tuple(rules)
        self._line_prefix = line_prefix

    @classmethod
    def from_config(cls, config: WatchConfig) -> PatternSet:
        """Compile every configured rule. Raises ConfigurationError."""
        compiled: list[CompiledRule] = []
        for index, rule in enumerate(config.rules, 1):
            if rule.type == "literal":
                compiled.append(build_literal_rule(rule, config.literal_template))
            else:
                compiled.append(build_pattern_rule(rule, index))
        return cls(compiled, compile_line_prefix(config.line_prefix))

    @property
    def rules(self) -> tuple[CompiledRule, ...]:
        return self._rules

    def __len__(self) -> int:
        return len(self._rules)

    def content_of(self, line: str) -> str:
        """The part of ``line`` rules are matched against."""
        if self._line_prefix is not None:
            m = self._line_prefix.match(line)
            if m:
                return line[m.end():]
        return line

    def evaluate(self, line: str) -> list[MatchEvent]:
        content = self.content_of(line)
        events: list[MatchEvent] = []
        for rule in self._rules:
            event = rule.match(content, line)
            if event is not None:
                events.append(event)
        return events
