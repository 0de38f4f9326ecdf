import logging
from typing import Any, Dict, List, Optional

from casual_llm import (
    AssistantMessage,
    LLMProvider,
    ModelConfig,
    SystemMessage,
    UserMessage,
    create_provider,
)

from inbox_facts.ai.protocol import ChatRequest, ChatResponse, ChatTurn, Usage
from inbox_facts.embeddings import TextEmbedding
from inbox_facts.errors import ProviderError

logger = logging.getLogger(__name__)


def to_casual_message(turn: ChatTurn):
    if turn.role == "system":
        return SystemMessage(content=turn.content)
    if turn.role == "assistant":
        return AssistantMessage(content=turn.content)
    return UserMessage(content=turn.content)


class CasualLLMProvider:
    """
    AiProvider backed by a casual-llm chat provider and a TextEmbedding.

    Requests that override the model get their own casual-llm provider,
    built from the same ModelConfig and cached by model name.
    """

    def __init__(
        self,
        llm: LLMProvider,
        embedding: TextEmbedding,
        model_name: str,
        provider_name: str,
        model_config: Optional[ModelConfig] = None,
        models_client: Optional[Any] = None,
    ):
        """
        Args:
            llm: casual-llm provider used for the configured model
            embedding: Embedder used for generate_embedding()
            model_name: Configured chat model
            provider_name: Backend identifier ("ollama", "lemonade", "foundry", "openai")
            model_config: Config llm was built from; needed for per-request model overrides
            models_client: openai.AsyncOpenAI client pointed at the backend, for list_models()
        """
        self._llm = llm
        self._embedding = embedding
        self._model_name = model_name
        self._provider_name = provider_name
        self._model_config = model_config
        self._models_client = models_client
        self._overrides: Dict[str, LLMProvider] = {}

        logger.info(
            f"CasualLLMProvider initialized: provider={provider_name}, model={model_name}, "
            f"embedding={embedding.model_name}"
        )

    @classmethod
    def from_config(
        cls,
        model_config: ModelConfig,
        embedding: TextEmbedding,
        provider_name: str,
        models_client: Optional[Any] = None,
    ) -> "CasualLLMProvider":
        return cls(
            llm=create_provider(model_config),
            embedding=embedding,
            model_name=model_config.name,
            provider_name=provider_name,
            model_config=model_config,
            models_client=models_client,
        )

    @property
    def model_name(self) -> str:
        return self._model_name

    @property
    def provider_name(self) -> str:
        return self._provider_name

    @property
    def embedding_dimension(self) -> Optional[int]:
        """Vector size of the embedding model, None until known."""
        return self._embedding.dimension

    def _llm_for(self, model: Optional[str]) -> LLMProvider:
        if not model or model == self._model_name or self._model_config is None:
            return self._llm

        if model not in self._overrides:
            logger.debug(f"Creating {self._provider_name} provider for model override {model}")
            self._overrides[model] = create_provider(
                ModelConfig(
                    name=model,
                    provider=self._model_config.provider,
                    base_url=self._model_config.base_url,
                    api_key=self._model_config.api_key,
                )
            )
        return self._overrides[model]

    async def chat_completion(self, request: ChatRequest) -> ChatResponse:
        llm = self._llm_for(request.model)
        messages = [to_casual_message(turn) for turn in request.messages]

        try:
            response = await llm.chat(
                messages=messages,
                response_format=request.response_format,
                temperature=request.temperature,
            )
        except Exception as e:
            raise ProviderError(f"{self._provider_name} chat completion failed: {e}") from e

        return ChatResponse(
            content=response.content or "",
            usage=self._usage(llm),
            model=request.model or self._model_name,
        )

    def _usage(self, llm: LLMProvider) -> Usage:
        # Not every casual-llm backend reports token counts
        get_usage = getattr(llm, "get_usage", None)
        usage = get_usage() if callable(get_usage) else None
        if usage is None:
            return Usage()
        return Usage(
            prompt_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            completion_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )

    async def generate_embedding(self, text: str) -> List[float]:
        try:
            return await self._embedding.embed_document(text)
        except ValueError:
            raise
        except Exception as e:
            raise ProviderError(f"{self._provider_name} embedding failed: {e}") from e

    async def list_models(self) -> List[str]:
        if self._models_client is None:
            return [self._model_name]

        try:
            page = await self._models_client.models.list()
        except Exception as e:
            raise ProviderError(f"{self._provider_name} model listing failed: {e}") from e

        return [model.id for model in page.data]
