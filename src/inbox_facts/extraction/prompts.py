"""
Prompts for fact extraction and JSON repair.

The extraction prompt is fully determined by the message fields and the
schema taxonomy, so the same message always produces the same request.
"""

from inbox_facts.schema import (
    SUMMARY_MAX_LENGTH,
    Intent,
    PrimaryType,
    Sentiment,
    Severity,
    Urgency,
    WaitingOn,
    enum_values,
)

EXTRACTION_SYSTEM_PROMPT = "You are an expert email analyst. Output valid JSON only."

REPAIR_SYSTEM_PROMPT = "You are a JSON repair specialist. Output corrected JSON only."

REPAIR_PROMPT = """The previous JSON output was invalid according to the schema. Fix it.

Text: {text}

Invalid JSON: {invalid_output}"""

EXTRACTION_PROMPT = f"""Analyze the following email and extract what it is about, what it asks for, and what could go wrong.
Respond ONLY with a JSON object matching this schema:
{{{{
  "primary_type": "{enum_values(PrimaryType)}",
  "intent": "{enum_values(Intent)}",
  "client_or_project": {{{{ "name": "string", "confidence": 0.0-1.0 }}}} | null,
  "sentiment": "{enum_values(Sentiment)}",
  "urgency": "{enum_values(Urgency)}",
  "due_by": "ISO-8601 timestamp" | null,
  "needs_response": true|false,
  "waiting_on": "{enum_values(WaitingOn)}",
  "summary": "string, at most {SUMMARY_MAX_LENGTH} characters",
  "key_points": ["string"],
  "risks": [{{{{ "title": "string", "details": "string", "owner": "string" | null, "severity": "{enum_values(Severity)}", "confidence": 0.0-1.0 }}}}],
  "issues": [{{{{ "title": "string", "details": "string", "owner": "string" | null, "severity": "{enum_values(Severity)}", "confidence": 0.0-1.0 }}}}],
  "blockers": [{{{{ "title": "string", "details": "string", "owner": "string" | null, "severity": "{enum_values(Severity)}", "confidence": 0.0-1.0 }}}}],
  "open_questions": [{{{{ "question": "string", "asked_by": "string" | null, "owner": "string" | null, "due_by": "ISO-8601 timestamp" | null, "confidence": 0.0-1.0 }}}}],
  "answered_questions": [{{{{ "question": "string", "answer_summary": "string", "confidence": 0.0-1.0 }}}}],
  "confidence": 0.0-1.0
}}}}

Subject: {{subject}}
From: {{sender}}
Body: {{body}}"""


def build_extraction_prompt(subject: str, sender: str, body: str) -> str:
    return EXTRACTION_PROMPT.format(subject=subject, sender=sender, body=body)


def build_repair_prompt(text: str, invalid_output: str) -> str:
    return REPAIR_PROMPT.format(text=text, invalid_output=invalid_output)
