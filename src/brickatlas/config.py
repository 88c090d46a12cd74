"""Configuration loading and validation."""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Annotated, Any, Literal, Union

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from .exceptions import ConfigurationError
from .rules.models import Urgency
from .rules.templates import get_template

DEFAULT_CONFIG_PATH = "~/.brickatlas/config.yaml"

DEFAULT_LITERAL_TEMPLATE = "You have entered {label}"
DEFAULT_LITERAL_TITLE = "brickatlas alert"
DEFAULT_LITERAL_MESSAGE = "Do NOT complete map! <b>{label}</b>"
DEFAULT_PATTERN_TITLE = "brickatlas: {rule}"
DEFAULT_PATTERN_MESSAGE = "{details}"


class LiteralRuleConfig(BaseModel):
    """Alert when a line equals ``template`` with ``label`` filled in."""

    model_config = ConfigDict(frozen=True)

    type: Literal["literal"] = "literal"
    label: str = Field(min_length=1)
    name: str = ""  # Defaults to the label
    template: str = ""  # Empty = WatchConfig.literal_template
    title: str = DEFAULT_LITERAL_TITLE
    message: str = DEFAULT_LITERAL_MESSAGE
    urgency: Urgency = Urgency.CRITICAL
    timeout_ms: int = Field(default=5000, ge=0)


class PatternRuleConfig(BaseModel):
    """Alert when ``expression`` matches the whole line."""

    model_config = ConfigDict(frozen=True)

    type: Literal["pattern"] = "pattern"
    name: str = ""
    preset: str = ""  # Built-in rule id, see rules/templates.py
    expression: str = ""
    fields: tuple[str, ...] = ()  # Empty = every named group, in order
    title: str = DEFAULT_PATTERN_TITLE
    message: str = DEFAULT_PATTERN_MESSAGE
    urgency: Urgency = Urgency.NORMAL
    timeout_ms: int = Field(default=5000, ge=0)

    @model_validator(mode="before")
    @classmethod
    def _apply_preset(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        preset_id = data.get("preset")
        if preset_id:
            preset = get_template(preset_id)
            if preset is None:
                raise ValueError(f"unknown preset '{preset_id}'")
            # Explicit keys win over the preset's values.
            data.setdefault("name", preset.id)
            data.setdefault("expression", preset.expression)
            data.setdefault("title", preset.title)
            data.setdefault("message", preset.message)
            data.setdefault("urgency", preset.urgency)
        if not data.get("expression"):
            raise ValueError("pattern rule needs an 'expression' or a 'preset'")
        return data


RuleConfig = Annotated[
    Union[LiteralRuleConfig, PatternRuleConfig], Field(discriminator="type")
]


class NotificationsConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    desktop_enabled: bool = True
    desktop_app_name: str = "brickatlas"
    ntfy_topic: str = ""
    ntfy_server_url: str = "https://ntfy.sh"
    webhook_url: str = ""


class WatchConfig(BaseModel):
    """Immutable watch target and rule definitions."""

    model_config = ConfigDict(frozen=True)

    watch_file: str = Field(min_length=1)
    rules: tuple[RuleConfig, ...]
    literal_template: str = DEFAULT_LITERAL_TEMPLATE  # or "poe"
    line_prefix: str = ""  # Regex stripped before matching, or "poe"
    coalesce_seconds: float = Field(default=1.0, ge=0.0)
    use_polling: bool = False
    poll_interval: float = Field(default=1.0, gt=0.0)
    max_consecutive_io_errors: int = Field(default=5, ge=1)
    dispatch_errors: Literal["log", "fatal"] = "log"
    notifications: NotificationsConfig = Field(default_factory=NotificationsConfig)
    log_file: str = ""

    @field_validator("rules", mode="before")
    @classmethod
    def _normalize_rules(cls, value: Any) -> Any:
        """Accept bare strings as literal labels and infer a missing ``type``."""
        if not isinstance(value, (list, tuple)):
            return value
        normalized = []
        for item in value:
            if isinstance(item, str):
                item = {"type": "literal", "label": item}
            elif isinstance(item, dict) and "type" not in item:
                item = {**item, "type": "literal" if "label" in item else "pattern"}
            normalized.append(item)
        return normalized

    @field_validator("rules")
    @classmethod
    def _require_rules(cls, value: tuple) -> tuple:
        if not value:
            raise ValueError("no rules given")
        return value

    @property
    def path(self) -> Path:
        return Path(self.watch_file).expanduser()


def _interpolate_env_vars(text: str) -> str:
    """Replace ${VAR_NAME} with environment variable values."""

    def replacer(match: re.Match) -> str:
        var_name = match.group(1)
        return os.environ.get(var_name, "")

    return re.sub(r"\$\{(\w+)\}", replacer, text)


def load_config_data(path: str | Path) -> dict[str, Any]:
    """Read a YAML config file (with ${ENV} interpolation) into a dict."""
    path = Path(path).expanduser()
    if not path.exists():
        raise ConfigurationError(f"Config file not found: {path}")
    try:
        data = yaml.safe_load(_interpolate_env_vars(path.read_text()))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read config file {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file {path} must contain a mapping")
    return data


def make_config(data: dict[str, Any]) -> WatchConfig:
    """Validate raw settings into a WatchConfig, wrapping pydantic errors."""
    try:
        return WatchConfig(**data)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration: {e}") from e


def load_config(path: str | Path | None = None) -> WatchConfig:
    """Load and validate a config file (default: ~/.brickatlas/config.yaml)."""
    return make_config(load_config_data(path or DEFAULT_CONFIG_PATH))


def build_config(
    config_path: str | Path | None = None,
    watch_file: str | None = None,
    labels: tuple[str, ...] | list[str] = (),
    patterns: tuple[str, ...] | list[str] = (),
    presets: tuple[str, ...] | list[str] = (),
    coalesce_seconds: float | None = None,
    use_polling: bool | None = None,
) -> WatchConfig:
    """Merge a config file with command-line values.

    Without a config path or watch file the default config file is used.
    Positional labels become literal rules and ``--pattern``/``--preset``
    values become pattern rules, appended after the file's rules.
    """
    data: dict[str, Any] = {}
    if config_path is not None:
        data = load_config_data(config_path)
    elif watch_file is None:
        data = load_config_data(DEFAULT_CONFIG_PATH)

    rules = list(data.get("rules") or [])
    rules.extend({"type": "literal", "label": label} for label in labels)
    for i, expression in enumerate(patterns, 1):
        rules.append({"type": "pattern", "name": f"pattern-{i}", "expression": expression})
    rules.extend({"type": "pattern", "preset": preset} for preset in presets)
    data["rules"] = rules

    if watch_file is not None:
        data["watch_file"] = watch_file
    if coalesce_seconds is not None:
        data["coalesce_seconds"] = coalesce_seconds
    if use_polling is not None:
        data["use_polling"] = use_polling

    if not data.get("watch_file"):
        raise ConfigurationError("no file to watch given")
    if not rules:
        raise ConfigurationError("no rules given")
    return make_config(data)
