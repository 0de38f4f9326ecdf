"""
Text embedding abstractions for inbox-facts.

- TextEmbedding: protocol every embedder satisfies
- OpenAIEmbedding: OpenAI-compatible embeddings API (OpenAI, Ollama, Lemonade, Foundry)
"""

from inbox_facts.embeddings.openai_embedding import OpenAIEmbedding
from inbox_facts.embeddings.protocol import TextEmbedding

__all__ = [
    "TextEmbedding",
    "OpenAIEmbedding",
]
