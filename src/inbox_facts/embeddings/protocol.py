"""
Text embedding protocol for inbox-facts.

Provides a unified interface for embedding message text into dense
vectors for the vector index.
"""

from typing import List, Optional, Protocol

from typing_extensions import runtime_checkable


@runtime_checkable
class TextEmbedding(Protocol):
    """
    Protocol for text embedding providers.

    All implementations must:

    1. Return deterministic vectors for the same input
    2. Expose their output dimension once known, so the vector collection
       can be created with a matching size
    3. Implement async methods

    Example:
        >>> embedder = OpenAIEmbedding(model="text-embedding-3-small")
        >>> vector = await embedder.embed_document("Project X status")
        >>> len(vector) == embedder.dimension
        True
    """

    @property
    def dimension(self) -> Optional[int]:
        """
        Vector dimension produced by this embedder.

        None for models whose dimension is only learned from the first
        response.
        """
        ...

    @property
    def model_name(self) -> str:
        """Identifier of the embedding model (e.g. "text-embedding-3-small")."""
        ...

    async def embed_document(self, text: str) -> List[float]:
        """
        Generate embedding for a message body to be stored.

        Raises:
            ValueError: If text is empty
        """
        ...

    async def embed_query(self, text: str) -> List[float]:
        """
        Generate embedding for a search query.

        Raises:
            ValueError: If text is empty
        """
        ...

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        """Generate embeddings for several documents, same order as input."""
        ...
