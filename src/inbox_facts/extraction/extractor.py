"""
Message -> ExtractedFact.

The extractor builds a deterministic prompt, gets validated JSON back
from SchemaRepair, and maps it field-by-field onto ExtractedFact. Model
output is untrusted: anything missing or malformed falls back to a
documented default instead of failing the message.
"""

import logging
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Type, TypeVar

from inbox_facts.extraction.prompts import build_extraction_prompt
from inbox_facts.extraction.repair import RawExtraction, SchemaRepair
from inbox_facts.models import (
    AnsweredQuestion,
    Blocker,
    ExtractedFact,
    Finding,
    Issue,
    Message,
    OpenQuestion,
    ProjectInfo,
    Provenance,
    Risk,
)
from inbox_facts.schema import (
    DEFAULT_INTENT,
    DEFAULT_PRIMARY_TYPE,
    DEFAULT_SENTIMENT,
    DEFAULT_SEVERITY,
    DEFAULT_URGENCY,
    DEFAULT_WAITING_ON,
    SUMMARY_MAX_LENGTH,
    Intent,
    PrimaryType,
    Sentiment,
    Severity,
    Urgency,
    WaitingOn,
    optional_str,
    parse_enum,
)

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Finding)


def clamp_confidence(value: Any) -> float:
    """Coerce to a float in [0, 1]; absent or unparseable values become 0.0."""
    if isinstance(value, bool) or value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return min(1.0, max(0.0, number))


def parse_timestamp(value: Any) -> Optional[datetime]:
    """ISO-8601 string to an aware datetime; naive values are taken as UTC."""
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        logger.debug(f"Ignoring unparseable timestamp {value!r}")
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _findings(value: Any, cls: Type[F]) -> List[F]:
    findings = []
    for entry in _list(value):
        if isinstance(entry, str):
            entry = {"title": entry}
        if not isinstance(entry, dict):
            continue

        title = optional_str(entry.get("title"))
        if title is None:
            logger.debug(f"Dropping {cls.__name__.lower()} without a title: {entry}")
            continue

        findings.append(
            cls(
                title=title,
                details=entry.get("details") if isinstance(entry.get("details"), str) else "",
                owner=optional_str(entry.get("owner")),
                severity=parse_enum(Severity, entry.get("severity"), DEFAULT_SEVERITY),
                confidence=clamp_confidence(entry.get("confidence")),
            )
        )
    return findings


def _open_questions(value: Any) -> List[OpenQuestion]:
    questions = []
    for entry in _list(value):
        if not isinstance(entry, dict) or optional_str(entry.get("question")) is None:
            continue
        questions.append(
            OpenQuestion(
                question=optional_str(entry.get("question")),
                asked_by=optional_str(entry.get("asked_by")),
                owner=optional_str(entry.get("owner")),
                due_by=parse_timestamp(entry.get("due_by")),
                confidence=clamp_confidence(entry.get("confidence")),
            )
        )
    return questions


def _answered_questions(value: Any) -> List[AnsweredQuestion]:
    questions = []
    for entry in _list(value):
        if not isinstance(entry, dict) or optional_str(entry.get("question")) is None:
            continue
        answer = entry.get("answer_summary")
        questions.append(
            AnsweredQuestion(
                question=optional_str(entry.get("question")),
                answer_summary=answer if isinstance(answer, str) else "",
                confidence=clamp_confidence(entry.get("confidence")),
            )
        )
    return questions


def _project(value: Any) -> Optional[ProjectInfo]:
    if not isinstance(value, dict):
        return None
    name = optional_str(value.get("name"))
    if name is None:
        return None
    return ProjectInfo(name=name, confidence=clamp_confidence(value.get("confidence")))


def map_facts(
    data: Dict[str, Any], message_id: Optional[int], provenance: Provenance
) -> ExtractedFact:
    """
    Map validated model output onto ExtractedFact.

    Every field has a default, so this never raises on odd model output:
    unknown enum labels fall back (urgency -> low, primary_type -> fyi, ...),
    confidences are clamped, and list entries missing their key field are
    dropped.
    """
    summary = data.get("summary")
    needs_response = data.get("needs_response")

    return ExtractedFact(
        message_id=message_id,
        primary_type=parse_enum(PrimaryType, data.get("primary_type"), DEFAULT_PRIMARY_TYPE),
        intent=parse_enum(Intent, data.get("intent"), DEFAULT_INTENT),
        client_or_project=_project(data.get("client_or_project")),
        sentiment=parse_enum(Sentiment, data.get("sentiment"), DEFAULT_SENTIMENT),
        urgency=parse_enum(Urgency, data.get("urgency"), DEFAULT_URGENCY),
        due_by=parse_timestamp(data.get("due_by")),
        needs_response=needs_response if isinstance(needs_response, bool) else False,
        waiting_on=parse_enum(WaitingOn, data.get("waiting_on"), DEFAULT_WAITING_ON),
        summary=summary[:SUMMARY_MAX_LENGTH] if isinstance(summary, str) else "",
        key_points=[point for point in _list(data.get("key_points")) if isinstance(point, str)],
        risks=_findings(data.get("risks"), Risk),
        issues=_findings(data.get("issues"), Issue),
        blockers=_findings(data.get("blockers"), Blocker),
        open_questions=_open_questions(data.get("open_questions")),
        answered_questions=_answered_questions(data.get("answered_questions")),
        confidence=clamp_confidence(data.get("confidence")),
        provenance=provenance,
    )


class FactExtractor:
    """Extracts structured facts from one message via the active AI provider."""

    def __init__(self, repair: SchemaRepair):
        self.repair = repair

    async def extract_raw(self, message: Message) -> RawExtraction:
        prompt = build_extraction_prompt(message.subject, message.sender, message.body_text)
        return await self.repair.extract_with_repair(prompt)

    async def extract(self, message: Message) -> ExtractedFact:
        """
        Extract facts for message, tagged with message.id.

        Raises:
            SchemaRepairFailed: If the model never produced valid JSON
            ProviderError: If the backend could not be reached
        """
        raw = await self.extract_raw(message)

        provenance = Provenance(model=raw.model, provider=raw.provider, prompt_id=raw.request_id)
        facts = map_facts(raw.data, message.id, provenance)

        logger.debug(
            f"Extracted facts for '{message.subject[:50]}': type={facts.primary_type.value}, "
            f"urgency={facts.urgency.value}, blockers={len(facts.blockers)}, repaired={raw.repaired}"
        )
        return facts
