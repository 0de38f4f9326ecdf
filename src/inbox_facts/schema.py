"""
Extraction schema, version 2.

Single home of the extraction taxonomy: the closed enumerations, the
required top-level fields with their primitive types, and the default
used for each enum when the model returns something outside it.

Version 1 (email_type / project / action_items / decisions / deadlines /
suggested_labels) is superseded and not read back.
"""

from enum import Enum
from typing import Any, List, Optional, Type, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, StrictBool, StrictFloat, StrictInt, StrictStr
from pydantic import ValidationError, field_validator

SCHEMA_VERSION = "2"

SUMMARY_MAX_LENGTH = 500


class PrimaryType(str, Enum):
    UPDATE = "update"
    REQUEST = "request"
    DECISION = "decision"
    FYI = "fyi"


class Intent(str, Enum):
    INFORM = "inform"
    ASK = "ask"
    ESCALATE = "escalate"
    COMMIT = "commit"
    CLARIFY = "clarify"
    RESOLVE = "resolve"


class Urgency(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Sentiment(str, Enum):
    NEUTRAL = "neutral"
    POSITIVE = "positive"
    CONCERNED = "concerned"
    HOSTILE = "hostile"


class WaitingOn(str, Enum):
    ME = "me"
    THEM = "them"
    THIRD_PARTY = "third_party"
    NONE = "none"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


DEFAULT_PRIMARY_TYPE = PrimaryType.FYI
DEFAULT_INTENT = Intent.INFORM
DEFAULT_URGENCY = Urgency.LOW
DEFAULT_SENTIMENT = Sentiment.NEUTRAL
DEFAULT_WAITING_ON = WaitingOn.NONE
DEFAULT_SEVERITY = Severity.MEDIUM

REQUIRED_FIELDS = ("primary_type", "summary", "confidence", "needs_response")


class ExtractionEnvelope(BaseModel):
    """
    Structural check applied to raw model output before mapping.

    Only the required top-level fields are typed here; everything else is
    optional and defaulted field-by-field when the facts are mapped.
    """

    model_config = ConfigDict(extra="allow")

    primary_type: StrictStr
    summary: StrictStr = Field(max_length=SUMMARY_MAX_LENGTH)
    confidence: Union[StrictInt, StrictFloat]
    needs_response: StrictBool

    @field_validator("confidence")
    @classmethod
    def _confidence_in_range(cls, value: float) -> float:
        if not 0.0 <= value <= 1.0:
            raise ValueError("confidence must be within [0, 1]")
        return value


def validation_errors(data: Any) -> List[str]:
    """Human-readable reasons why data fails the schema (empty if valid)."""
    if not isinstance(data, dict):
        return [f"expected a JSON object, got {type(data).__name__}"]
    try:
        ExtractionEnvelope.model_validate(data)
    except ValidationError as e:
        return [
            f"{'.'.join(str(part) for part in error['loc']) or '<root>'}: {error['msg']}"
            for error in e.errors()
        ]
    return []


def validate(data: Any) -> bool:
    """True if data has every required field with the right primitive type."""
    return not validation_errors(data)


E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: Type[E], value: Any, default: E) -> E:
    """
    Parse a model-supplied label into enum_cls, falling back to default.

    Matching ignores case and treats spaces and hyphens as underscores,
    so "Third Party" and "third-party" both map to WaitingOn.THIRD_PARTY.
    """
    if isinstance(value, enum_cls):
        return value
    if not isinstance(value, str):
        return default
    key = value.strip().lower().replace("-", "_").replace(" ", "_")
    try:
        return enum_cls(key)
    except ValueError:
        return default


def enum_values(enum_cls: Type[Enum]) -> str:
    """Pipe-separated labels, as used in the prompt template."""
    return "|".join(member.value for member in enum_cls)


def optional_str(value: Any) -> Optional[str]:
    """Non-empty stripped string or None."""
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None
