from typing import List

from typing_extensions import Protocol, runtime_checkable

from inbox_facts.models import Message


@runtime_checkable
class MailSource(Protocol):
    """
    Protocol for mailbox access.

    The scheduler only needs "recent messages in a folder"; how they are
    fetched (COM automation, IMAP, Graph, fixtures) is up to the
    implementation.
    """

    async def fetch_recent(self, folder_id: str, window_days: float) -> List[Message]:
        """
        Messages in folder_id received within the last window_days.

        Raises:
            SourceFetchError: If the folder cannot be read
        """
        ...
