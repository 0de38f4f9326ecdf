"""
inbox-facts: mailbox ingestion into structured, searchable facts.

Core components:
- sync: Polling scheduler (initial scan, then delta scans on a fixed cadence)
- pipeline: Per-message fingerprint, persist, extract, embed and index
- extraction: Schema-checked AI extraction with a single repair pass
- ai: Hot-swappable AI provider registry and adapters
- storage: Relational and vector store protocols and implementations
- models: Core data models (Message, ExtractedFact, ...)
"""

__version__ = "0.1.0"

from inbox_facts.models import (
    ExtractedFact,
    Message,
    MessageWithFacts,
    ProcessOutcome,
    SearchResult,
    VectorQueryFilter,
)
from inbox_facts.pipeline import ExtractionPipeline
from inbox_facts.service import InboxFactsService
from inbox_facts.sync import ScanReport, SyncManager, SyncPhase, SyncSettings

__all__ = [
    "__version__",
    # Models
    "ExtractedFact",
    "Message",
    "MessageWithFacts",
    "ProcessOutcome",
    "SearchResult",
    "VectorQueryFilter",
    # Components
    "ExtractionPipeline",
    "InboxFactsService",
    "ScanReport",
    "SyncManager",
    "SyncPhase",
    "SyncSettings",
]
