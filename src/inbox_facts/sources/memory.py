"""
In-memory mail source for tests and development.

Messages are grouped by folder id and filtered on received_at against
the requested window, newest first.
"""

import logging
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Set

from inbox_facts.errors import SourceFetchError
from inbox_facts.models import Message, utcnow

logger = logging.getLogger(__name__)


class InMemoryMailSource:
    """In-memory implementation of the MailSource protocol."""

    def __init__(self, messages: Optional[Dict[str, Iterable[Message]]] = None):
        self._folders: Dict[str, List[Message]] = {}
        self._failing: Set[str] = set()
        self.fetch_log: List[tuple] = []  # (folder_id, window_days)

        for folder_id, folder_messages in (messages or {}).items():
            for message in folder_messages:
                self.add(folder_id, message)

    def add(self, folder_id: str, message: Message) -> None:
        self._folders.setdefault(folder_id, []).append(message)

    def fail_folder(self, folder_id: str) -> None:
        """Make every fetch of folder_id raise SourceFetchError."""
        self._failing.add(folder_id)

    def restore_folder(self, folder_id: str) -> None:
        self._failing.discard(folder_id)

    async def fetch_recent(self, folder_id: str, window_days: float) -> List[Message]:
        self.fetch_log.append((folder_id, window_days))

        if folder_id in self._failing:
            raise SourceFetchError(f"Folder {folder_id} is unavailable")

        cutoff = utcnow() - timedelta(days=window_days)
        recent = [m for m in self._folders.get(folder_id, []) if m.received_at >= cutoff]
        recent.sort(key=lambda m: m.received_at, reverse=True)

        logger.debug(f"Fetched {len(recent)} messages from {folder_id} (window={window_days}d)")
        return [m.model_copy(deep=True) for m in recent]
