"""
LLM Client Infrastructure
==========================

Clients for the two AI capabilities the assistant depends on:

- Embeddings: text -> fixed-length vector (OpenAI embeddings API)
- Chat completion: system instruction + user text -> text
  (any OpenAI-compatible endpoint; Gemini by default)

The two are configured and constructed independently so either can be
swapped or stubbed on its own. Every failure is raised as LLMException.
"""

import hashlib
import json
import random
import time
from typing import List, Optional
from abc import ABC, abstractmethod

from openai import AsyncOpenAI

from config import settings
from core import LLMException, ConfigurationException
from shared.infrastructure.grafana import get_grafana_exporter
from shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

MOCK_EMBEDDING_DIMENSION = 256


class EmbeddingResult:
    """Result of an embedding generation."""

    def __init__(self, embedding: List[float], model: str):
        self.embedding = embedding
        self.model = model
        self.dimension = len(embedding)


class ChatCompletionResult:
    """Result of a chat completion."""

    def __init__(
        self,
        content: str,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: int
    ):
        self.content = content
        self.model = model
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.total_tokens = prompt_tokens + completion_tokens
        self.latency_ms = latency_ms


class IEmbeddingClient(ABC):
    """Interface for embedding generation."""

    @abstractmethod
    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """Generate embedding for text."""


class IChatClient(ABC):
    """Interface for chat completion."""

    @abstractmethod
    async def chat_completion(
        self,
        system_instruction: str,
        user_text: str,
        max_tokens: int = 500,
        json_output: bool = False,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """Generate chat completion."""


async def _export_metrics(
    model: str,
    operation: str,
    start_time: float,
    prompt_tokens: int = 0,
    completion_tokens: int = 0,
    failed: bool = False
) -> None:
    exporter = get_grafana_exporter()
    if not exporter or not exporter.is_enabled():
        return
    try:
        await exporter.export_llm_metrics(
            model=model,
            latency_ms=int((time.perf_counter() - start_time) * 1000),
            operation=operation,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            failed=failed
        )
    except Exception as e:
        # metrics never decide the outcome of a provider call
        logger.warning("Metrics export failed", extra={"operation": operation, "error": str(e)})


class OpenAIEmbeddingClient(IEmbeddingClient):
    """
    OpenAI embeddings client.

    Provides async wrapper around the OpenAI embeddings endpoint.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None
    ):
        self._api_key = api_key or settings.embedding_api_key
        if not self._api_key:
            raise ConfigurationException("Embedding API key not configured")

        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=base_url or settings.embedding_base_url,
            timeout=settings.llm_timeout_seconds
        )
        self._model = model or settings.embedding_model

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        """
        Generate embedding for text.

        Args:
            text: Text to embed

        Returns:
            EmbeddingResult with embedding vector

        Raises:
            LLMException: If embedding generation fails
        """
        start_time = time.perf_counter()
        try:
            response = await self._client.embeddings.create(
                model=self._model,
                input=text
            )
        except Exception as e:
            await _export_metrics(self._model, "embedding", start_time, failed=True)
            raise LLMException(f"Embedding generation failed: {str(e)}")

        await _export_metrics(
            self._model, "embedding", start_time,
            prompt_tokens=getattr(response.usage, "prompt_tokens", 0) or 0
        )
        return EmbeddingResult(
            embedding=list(response.data[0].embedding),
            model=self._model
        )


class OpenAIChatClient(IChatClient):
    """
    Chat completion client for any OpenAI-compatible endpoint.

    Defaults to Gemini through its OpenAI-compatible API.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        model: Optional[str] = None
    ):
        self._api_key = api_key or settings.completion_api_key
        if not self._api_key:
            raise ConfigurationException("Completion API key not configured")

        self._client = AsyncOpenAI(
            api_key=self._api_key,
            base_url=base_url or settings.completion_base_url,
            timeout=settings.llm_timeout_seconds
        )
        self._model = model or settings.llm_model

    async def chat_completion(
        self,
        system_instruction: str,
        user_text: str,
        max_tokens: int = 500,
        json_output: bool = False,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        """
        Generate chat completion.

        Args:
            system_instruction: System turn
            user_text: User turn
            max_tokens: Maximum tokens to generate
            json_output: Ask the provider for a JSON object response
            operation: Operation type for metrics (response, sentiment, ...)

        Returns:
            ChatCompletionResult with generated text (may be empty)

        Raises:
            LLMException: If completion fails
        """
        start_time = time.perf_counter()

        kwargs = {}
        if json_output:
            kwargs["response_format"] = {"type": "json_object"}

        try:
            response = await self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_instruction},
                    {"role": "user", "content": user_text}
                ],
                temperature=settings.llm_temperature,
                max_tokens=max_tokens,
                **kwargs
            )
        except Exception as e:
            await _export_metrics(self._model, operation, start_time, failed=True)
            raise LLMException(f"Chat completion failed: {str(e)}")

        latency_ms = int((time.perf_counter() - start_time) * 1000)
        content = response.choices[0].message.content if response.choices else None
        prompt_tokens = response.usage.prompt_tokens if response.usage else 0
        completion_tokens = response.usage.completion_tokens if response.usage else 0

        await _export_metrics(
            self._model, operation, start_time,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens
        )

        return ChatCompletionResult(
            content=content or "",
            model=self._model,
            prompt_tokens=prompt_tokens,
            completion_tokens=completion_tokens,
            latency_ms=latency_ms
        )


class MockEmbeddingClient(IEmbeddingClient):
    """
    Mock embedding client for local runs.

    Returns a deterministic pseudo-embedding derived from the text hash.
    """

    async def generate_embedding(self, text: str) -> EmbeddingResult:
        seed = int(hashlib.sha256(text.encode()).hexdigest()[:8], 16)
        rng = random.Random(seed)
        embedding = [rng.uniform(-1, 1) for _ in range(MOCK_EMBEDDING_DIMENSION)]
        return EmbeddingResult(embedding=embedding, model="mock-embedding")


class MockChatClient(IChatClient):
    """
    Mock chat client for local runs.

    Returns predictable responses without calling external APIs.
    """

    async def chat_completion(
        self,
        system_instruction: str,
        user_text: str,
        max_tokens: int = 500,
        json_output: bool = False,
        operation: str = "chat_completion"
    ) -> ChatCompletionResult:
        if json_output:
            content = json.dumps(
                {"sentiment": "neutro", "urgency": "média", "confidence": 0.5},
                ensure_ascii=False
            )
        else:
            content = f"[mock] Recebemos sua mensagem: {user_text[:200]}"

        return ChatCompletionResult(
            content=content,
            model="mock-model",
            prompt_tokens=len(system_instruction.split()) + len(user_text.split()),
            completion_tokens=len(content.split()),
            latency_ms=0
        )


def build_embedding_client() -> IEmbeddingClient:
    """Construct the embedding client selected by settings."""
    if settings.mock_llm:
        logger.info("Using mock embedding client")
        return MockEmbeddingClient()
    return OpenAIEmbeddingClient()


def build_chat_client() -> IChatClient:
    """Construct the chat client selected by settings."""
    if settings.mock_llm:
        logger.info("Using mock chat client")
        return MockChatClient()
    return OpenAIChatClient()
