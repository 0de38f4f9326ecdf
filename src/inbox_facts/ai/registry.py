"""
Hot-swappable handle to the active AI backend.

Readers take a snapshot of the current provider reference and keep using
it for the duration of one call; a swap replaces the reference in a
single assignment, so a reader sees either the old provider or the new
one, never a mix. Swaps are serialized by a lock so concurrent
configuration changes cannot interleave.
"""

import logging
import threading
from contextlib import contextmanager
from typing import Iterator

from inbox_facts.ai.protocol import AiProvider

logger = logging.getLogger(__name__)


class AiProviderRegistry:
    def __init__(self, provider: AiProvider):
        self._provider = provider
        self._generation = 0
        self._swap_lock = threading.Lock()

        logger.info(
            f"AiProviderRegistry initialized: provider={provider.provider_name}, "
            f"model={provider.model_name}"
        )

    @property
    def current(self) -> AiProvider:
        return self._provider

    @property
    def generation(self) -> int:
        """Number of swaps performed so far."""
        return self._generation

    @contextmanager
    def read(self) -> Iterator[AiProvider]:
        """
        Borrow the current provider for one call.

        Example:
            >>> with registry.read() as ai:
            ...     response = await ai.chat_completion(request)
        """
        provider = self._provider
        yield provider

    def swap(self, new_provider: AiProvider) -> AiProvider:
        """
        Install new_provider and return the one it replaced.

        Calls already holding a read handle finish against the old provider.
        """
        with self._swap_lock:
            old_provider = self._provider
            self._provider = new_provider
            self._generation += 1
            generation = self._generation

        logger.info(
            f"Swapped AI provider: {old_provider.provider_name}/{old_provider.model_name} -> "
            f"{new_provider.provider_name}/{new_provider.model_name} (generation={generation})"
        )
        return old_provider
