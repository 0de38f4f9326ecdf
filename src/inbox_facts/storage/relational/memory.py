"""
In-memory relational storage implementation.

Mirrors SQLAlchemyRelationalStore semantics (natural-key upserts, one
facts row per message) without a database. Suitable for tests and
throwaway runs; data is lost on restart.
"""

import logging
from collections import Counter
from typing import Any, Dict, List, Optional, Tuple

from inbox_facts.errors import StorageError
from inbox_facts.models import ExtractedFact, Message, MessageWithFacts, utcnow
from inbox_facts.storage.relational.sqlalchemy import MESSAGE_UPDATE_COLUMNS

logger = logging.getLogger(__name__)


class InMemoryRelationalStore:
    """In-memory implementation of the RelationalStore protocol."""

    def __init__(self):
        self._messages: Dict[int, Message] = {}
        self._facts: Dict[int, ExtractedFact] = {}
        self._config: Dict[str, str] = {}

        # Natural key index: (store_id, entry_id) -> id
        self._keys: Dict[Tuple[str, str], int] = {}
        self._next_id = 1

        logger.info("InMemoryRelationalStore initialized")

    def save_message(self, message: Message) -> int:
        key = (message.store_id, message.entry_id)
        indexed_at = message.last_indexed_at or utcnow()

        message_id = self._keys.get(key)
        if message_id is None:
            message_id = self._next_id
            self._next_id += 1
            self._keys[key] = message_id
            self._messages[message_id] = message.model_copy(
                update={"id": message_id, "last_indexed_at": indexed_at}, deep=True
            )
        else:
            updates = {column: getattr(message, column) for column in MESSAGE_UPDATE_COLUMNS}
            updates["last_indexed_at"] = indexed_at
            self._messages[message_id] = self._messages[message_id].model_copy(update=updates)

        logger.debug(f"Saved message {message_id} ({message.store_id}/{message.entry_id})")
        return message_id

    def save_facts(self, facts: ExtractedFact) -> None:
        if facts.message_id is None:
            raise StorageError("Cannot save facts without a message_id")
        if facts.message_id not in self._messages:
            raise StorageError(f"Unknown message id {facts.message_id}")

        existing = self._facts.get(facts.message_id)
        stored = facts.model_copy(deep=True)
        if existing is not None:
            stored.created_at = existing.created_at
        self._facts[facts.message_id] = stored

    def get_config(self, key: str) -> Optional[str]:
        return self._config.get(key)

    def set_config(self, key: str, value: str) -> None:
        self._config[key] = value
        logger.info(f"Config updated: {key}")

    def get_message(self, message_id: int) -> Optional[Message]:
        return self._messages.get(message_id)

    def get_facts(self, message_id: int) -> Optional[ExtractedFact]:
        return self._facts.get(message_id)

    def _with_facts(self, message: Message) -> MessageWithFacts:
        return MessageWithFacts(message=message, facts=self._facts.get(message.id))

    def _newest_first(self) -> List[Message]:
        return sorted(
            self._messages.values(), key=lambda m: (m.received_at, m.id), reverse=True
        )

    def get_messages_by_ids(self, message_ids: List[int]) -> List[MessageWithFacts]:
        return [
            self._with_facts(self._messages[message_id])
            for message_id in message_ids
            if message_id in self._messages
        ]

    def get_recent_messages(self, limit: int = 50) -> List[MessageWithFacts]:
        return [self._with_facts(message) for message in self._newest_first()[:limit]]

    def get_messages_without_facts(self, limit: Optional[int] = None) -> List[Message]:
        missing = [m for m in self._newest_first() if m.id not in self._facts]
        if limit:
            missing = missing[:limit]
        return missing

    def get_stats(self) -> Dict[str, Any]:
        facts = list(self._facts.values())
        return {
            "total": len(self._messages),
            "with_facts": len(facts),
            "needs_response": sum(1 for f in facts if f.needs_response),
            "sentiment": dict(Counter(f.sentiment.value for f in facts)),
        }

    def count_messages(self) -> int:
        return len(self._messages)
