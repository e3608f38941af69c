"""
Knowledge External Service Adapters
====================================

Adapts the infrastructure embedding client to the application layer
IEmbeddingProvider interface.
"""

from typing import List

from knowledge.application import IEmbeddingProvider
from infrastructure.llm import IEmbeddingClient, build_embedding_client


class EmbeddingProviderAdapter(IEmbeddingProvider):
    """
    Adapter that wraps the infrastructure embedding client.

    Implements the application layer IEmbeddingProvider interface.
    """

    def __init__(self, client: IEmbeddingClient | None = None):
        self._client = client or build_embedding_client()

    async def embed(self, text: str) -> List[float]:
        """Generate embedding for text."""
        result = await self._client.generate_embedding(text)
        return result.embedding
