"""
Error taxonomy for the ingestion pipeline.

None of these are fatal to the scheduler: they are raised to the nearest
caller that can attribute them (a folder, a message or a tick), logged
there, and the loop moves on.
"""

from typing import Optional


class InboxFactsError(Exception):
    """Base class for all inbox-facts errors."""


class SourceFetchError(InboxFactsError):
    """The mail source could not be reached or rejected the folder filter."""


class ProviderError(InboxFactsError):
    """A network or HTTP failure while calling the AI backend."""


class SchemaRepairFailed(InboxFactsError):
    """
    Model output did not validate, even after the single repair pass.

    Attributes:
        raw_output: The last raw content returned by the model
    """

    def __init__(self, message: str, raw_output: Optional[str] = None):
        super().__init__(message)
        self.raw_output = raw_output


class StorageError(InboxFactsError):
    """A relational or vector store write/read failed."""


class PipelineError(InboxFactsError):
    """
    A single message failed somewhere in the processing pipeline.

    Tagged with enough context for the scheduler to log it without
    holding on to the message itself.

    Attributes:
        stage: Pipeline step that failed (persist_message, extract, save_facts, embed, upsert_vector)
        subject: Subject of the failing message
        folder: Folder the message was fetched from
        message_id: Relational id, if the message was persisted before the failure
    """

    def __init__(
        self,
        stage: str,
        subject: str,
        folder: str,
        message_id: Optional[int] = None,
        cause: Optional[BaseException] = None,
    ):
        self.stage = stage
        self.subject = subject
        self.folder = folder
        self.message_id = message_id
        self.cause = cause
        super().__init__(f"{stage} failed for '{subject}' ({folder}): {cause}")
