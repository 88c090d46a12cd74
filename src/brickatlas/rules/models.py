"""Pydantic models for match events and the alerts rendered from them."""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field


class Urgency(str, Enum):
    NORMAL = "normal"
    CRITICAL = "critical"


class AlertSpec(BaseModel):
    """How a rule's matches are presented to the operator."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: str
    message: str
    urgency: Urgency = Urgency.NORMAL
    timeout_ms: int = 5000


class LiteralMatch(BaseModel):
    """A line equal to a literal rule's instantiated template."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["literal"] = "literal"
    rule: AlertSpec
    label: str
    line: str


class PatternMatch(BaseModel):
    """A line matched by a capture rule, with every declared field."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["pattern"] = "pattern"
    rule: AlertSpec
    fields: dict[str, str]
    line: str


MatchEvent = Annotated[Union[LiteralMatch, PatternMatch], Field(discriminator="kind")]


class Alert(BaseModel):
    """Payload handed to notification sinks.

    ``body`` may carry simple ``<b>``/``<i>`` emphasis markup; sinks that
    cannot render it strip or convert it.
    """

    title: str
    body: str
    urgency: Urgency = Urgency.NORMAL
    timeout_ms: int = 5000
    event: MatchEvent
