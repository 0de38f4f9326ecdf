"""
Schema-checked extraction with a single repair pass.

The model is asked for JSON; when the reply does not parse or does not
validate, it gets exactly one chance to fix its own output. A second
failure is reported as SchemaRepairFailed and never retried.
"""

import json
import logging
import uuid
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, Field

from inbox_facts.ai.protocol import AiProvider, ChatRequest, ChatTurn
from inbox_facts.ai.registry import AiProviderRegistry
from inbox_facts.errors import SchemaRepairFailed
from inbox_facts.extraction.prompts import (
    EXTRACTION_SYSTEM_PROMPT,
    REPAIR_SYSTEM_PROMPT,
    build_repair_prompt,
)
from inbox_facts.schema import validation_errors

logger = logging.getLogger(__name__)


class RawExtraction(BaseModel):
    """Validated model output plus who produced it."""

    data: Dict[str, Any]
    model: str
    provider: str
    request_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    repaired: bool = False


def _parse(content: str) -> Tuple[Optional[Any], Optional[str]]:
    """Decode content; returns (data, problem) with problem None when valid."""
    try:
        data = json.loads(content)
    except json.JSONDecodeError as e:
        return None, f"not valid JSON: {e}"

    errors = validation_errors(data)
    if errors:
        return data, "; ".join(errors)
    return data, None


class SchemaRepair:
    def __init__(self, registry: AiProviderRegistry, model: Optional[str] = None):
        """
        Args:
            registry: Source of the active AI provider
            model: Optional chat model override for extraction calls
        """
        self.registry = registry
        self.model = model

    async def _complete(self, ai: AiProvider, system_prompt: str, text: str) -> str:
        request = ChatRequest(
            messages=[
                ChatTurn(role="system", content=system_prompt),
                ChatTurn(role="user", content=text),
            ],
            temperature=0.0,
            response_format="json",
            model=self.model,
        )
        response = await ai.chat_completion(request)
        return response.content

    async def extract_with_repair(self, text: str) -> RawExtraction:
        """
        Run the extraction prompt, repairing the reply at most once.

        Both calls go to the provider that was current when extraction
        started, even if a swap happens in between.

        Raises:
            SchemaRepairFailed: If the repaired reply is still invalid
            ProviderError: If the backend could not be reached
        """
        with self.registry.read() as ai:
            model_name = self.model or ai.model_name
            provider_name = ai.provider_name

            content = await self._complete(ai, EXTRACTION_SYSTEM_PROMPT, text)
            data, problem = _parse(content)
            if problem is None:
                return RawExtraction(data=data, model=model_name, provider=provider_name)

            logger.warning(f"First AI response failed validation ({problem}). Attempting repair pass...")

            repaired_content = await self._complete(
                ai, REPAIR_SYSTEM_PROMPT, build_repair_prompt(text, content)
            )

        data, problem = _parse(repaired_content)
        if problem is not None:
            logger.error(f"Repair pass failed: {problem}")
            raise SchemaRepairFailed(
                f"Self-repair failed to produce valid JSON: {problem}",
                raw_output=repaired_content,
            )

        logger.info("Repair pass produced valid JSON")
        return RawExtraction(data=data, model=model_name, provider=provider_name, repaired=True)
