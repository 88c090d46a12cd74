"""Match rules: compiled rule set, presets and event models."""

from .engine import LiteralRule, PatternRule, PatternSet
from .models import Alert, AlertSpec, LiteralMatch, MatchEvent, PatternMatch, Urgency
from .templates import RuleTemplate, get_template, list_templates

__all__ = [
    "PatternSet",
    "LiteralRule",
    "PatternRule",
    "Alert",
    "AlertSpec",
    "LiteralMatch",
    "PatternMatch",
    "MatchEvent",
    "Urgency",
    "RuleTemplate",
    "get_template",
    "list_templates",
]
