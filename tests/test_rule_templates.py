"""Tests for the built-in capture rule presets."""

import re

from brickatlas.rules.engine import normalize_expression
from brickatlas.rules.templates import (
    LINE_PREFIXES,
    LITERAL_TEMPLATES,
    TEMPLATES,
    get_template,
    list_templates,
)


class TestRuleTemplates:
    def test_templates_not_empty(self):
        assert len(TEMPLATES) > 0

    def test_all_templates_have_required_fields(self):
        for t in TEMPLATES:
            assert t.id, f"Template missing id: {t}"
            assert t.name, f"Template missing name: {t.id}"
            assert t.description, f"Template missing description: {t.id}"
            assert t.expression, f"Template missing expression: {t.id}"
            assert t.title, f"Template missing title: {t.id}"
            assert t.message, f"Template missing message: {t.id}"
            assert t.urgency in ("normal", "critical"), (
                f"Invalid urgency for {t.id}: {t.urgency}"
            )

    def test_template_ids_unique(self):
        ids = [t.id for t in TEMPLATES]
        assert len(ids) == len(set(ids)), "Duplicate template IDs found"

    def test_expressions_compile_with_named_groups(self):
        for t in TEMPLATES:
            regex = re.compile(normalize_expression(t.expression))
            assert regex.groupindex, f"Template has no capture groups: {t.id}"

    def test_list_templates_returns_copy(self):
        result = list_templates()
        assert result == TEMPLATES
        result.clear()
        assert len(list_templates()) == len(TEMPLATES)

    def test_get_template_found(self):
        t = get_template("trade-whisper")
        assert t is not None
        assert t.name == "Trade Whisper"
        assert t.urgency == "critical"

    def test_get_template_not_found(self):
        assert get_template("does-not-exist") is None

    def test_specific_templates_exist(self):
        for tid in ["trade-whisper", "player-joined", "player-left", "level-up", "afk-on"]:
            assert get_template(tid) is not None, f"Missing template: {tid}"

    def test_level_up_matches_client_line(self):
        t = get_template("level-up")
        regex = re.compile(normalize_expression(t.expression))
        m = regex.fullmatch("Chris (Deadeye) is now level 92")
        assert m is not None
        assert m.group("level") == "92"


class TestAliases:
    def test_poe_prefix_matches_client_timestamp(self):
        line = "2021/01/17 19:45:01 380486187 ac9 [INFO Client 9796] : You have entered Oriath."
        m = re.match(LINE_PREFIXES["poe"], line)
        assert m is not None
        assert line[m.end():] == "You have entered Oriath."

    def test_poe_prefix_without_colon(self):
        line = "2021/01/17 19:45:01 380486187 [DEBUG Client 9796] Connecting to instance server"
        m = re.match(LINE_PREFIXES["poe"], line)
        assert line[m.end():] == "Connecting to instance server"

    def test_poe_literal_template(self):
        assert "{label}" in LITERAL_TEMPLATES["poe"]
