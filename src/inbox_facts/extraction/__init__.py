"""
Fact extraction.

- SchemaRepair: schema-checked chat call with a single repair pass
- FactExtractor: Message -> ExtractedFact
- map_facts: defaulting/clamping of raw model output
"""

from inbox_facts.extraction.extractor import (
    FactExtractor,
    clamp_confidence,
    map_facts,
    parse_timestamp,
)
from inbox_facts.extraction.repair import RawExtraction, SchemaRepair

__all__ = [
    "FactExtractor",
    "RawExtraction",
    "SchemaRepair",
    "clamp_confidence",
    "map_facts",
    "parse_timestamp",
]
