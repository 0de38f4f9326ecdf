"""OpenAI-compatible embedding adapter for inbox-facts."""

import logging
import os
from typing import Dict, List, Optional

from openai import AsyncOpenAI

logger = logging.getLogger(__name__)

KNOWN_DIMENSIONS: Dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "all-minilm": 384,
    "nomic-embed-text": 768,
}


class OpenAIEmbedding:
    """
    Embedding adapter for any server speaking the OpenAI embeddings API.

    Covers OpenAI itself and local servers exposing `/v1/embeddings`
    (Ollama, Lemonade, Foundry Local) through base_url.

    Example:
        >>> embedder = OpenAIEmbedding(
        ...     model="all-minilm",
        ...     base_url="http://localhost:11434/v1",
        ...     api_key="ollama",
        ... )
        >>> vector = await embedder.embed_document("We are blocked on vendor sign-off")
    """

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        dimensions: Optional[int] = None,
        timeout: float = 30.0,
        max_retries: int = 3,
    ):
        """
        Initialize the embedder.

        Args:
            model: Embedding model name
            api_key: API key (None = use OPENAI_API_KEY env var)
            base_url: Custom endpoint (None = official OpenAI)
            dimensions: Requested output dimension (text-embedding-3-* only)
            timeout: Request timeout in seconds
            max_retries: Number of retry attempts for failed requests
        """
        self._model = model
        self._dimensions = dimensions
        self._client = AsyncOpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
        )
        self._dimension = dimensions or KNOWN_DIMENSIONS.get(model)

        logger.info(
            f"OpenAI embedder initialized: {model} "
            f"({self._dimension or 'unknown'} dimensions, base_url={base_url or 'default'})"
        )

    @property
    def dimension(self) -> Optional[int]:
        return self._dimension

    @property
    def model_name(self) -> str:
        return self._model

    async def _create(self, inputs) -> List[List[float]]:
        kwargs = {"model": self._model, "input": inputs}
        if self._dimensions is not None:
            kwargs["dimensions"] = self._dimensions

        response = await self._client.embeddings.create(**kwargs)
        vectors = [item.embedding for item in response.data]

        if vectors and self._dimension is None:
            self._dimension = len(vectors[0])
            logger.info(f"Learned embedding dimension for {self._model}: {self._dimension}")

        return vectors

    async def embed_document(self, text: str) -> List[float]:
        if not text or not text.strip():
            raise ValueError("Cannot embed empty text")

        vectors = await self._create(text)
        return vectors[0]

    async def embed_query(self, text: str) -> List[float]:
        # No document/query distinction for OpenAI-style models
        return await self.embed_document(text)

    async def embed_documents(self, texts: List[str]) -> List[List[float]]:
        if not texts:
            return []

        if any(not text or not text.strip() for text in texts):
            raise ValueError("Cannot embed empty texts in batch")

        return await self._create(texts)
