"""
Assistant Application Services
===============================

Reply composition and sentiment classification.

Both services absorb provider failures and always return a usable
result.
"""

from typing import List
from abc import ABC, abstractmethod

from assistant.domain import (
    ComposeOptions,
    SentimentResult,
    ResponsePromptBuilder,
    SentimentPromptBuilder,
    TEMPORARILY_UNAVAILABLE_MESSAGE,
    CRITICAL_FAILURE_MESSAGE
)
from knowledge.application import KnowledgeIndex
from knowledge.domain import KnowledgeEntry
from config import settings
from core import LLMException
from shared.infrastructure.logging import get_logger

logger = get_logger(__name__)

SENTIMENT_MAX_TOKENS = 200


# ========== Provider Interfaces ==========

class ICompletionProvider(ABC):
    """Interface for the completion capability."""

    @abstractmethod
    async def complete(
        self,
        system_instruction: str,
        user_text: str,
        max_tokens: int,
        json_output: bool = False
    ) -> str:
        """Generate text; may return an empty string."""


# ========== Application Services ==========

class ResponseComposer:
    """
    Builds a knowledge-grounded reply.

    Fallback order when providers fail:
    1. Completion with ranked (or full-corpus) context
    2. Lexical best-match excerpt from the corpus
    3. Completion without context, then a generic apology

    ``compose`` never raises and never returns an empty string.
    """

    def __init__(self, completion: ICompletionProvider, index: KnowledgeIndex):
        self._completion = completion
        self._index = index

    async def compose(
        self,
        user_message: str,
        corpus: List[KnowledgeEntry],
        options: ComposeOptions
    ) -> str:
        """
        Compose a reply to a user message.

        Args:
            user_message: Inbound message text
            corpus: Full knowledge corpus
            options: Prompt, fallback message and token limit

        Returns:
            Displayable reply text
        """
        try:
            if corpus:
                return await self._compose_with_knowledge(user_message, corpus, options)
            return await self._compose_without_knowledge(user_message, options)
        except Exception as e:
            logger.error(
                "Reply composition failed",
                extra={"error": str(e), "error_type": type(e).__name__}
            )
            return CRITICAL_FAILURE_MESSAGE

    async def _compose_with_knowledge(
        self,
        user_message: str,
        corpus: List[KnowledgeEntry],
        options: ComposeOptions
    ) -> str:
        try:
            ranked = await self._index.rank(
                user_message, corpus, settings.generation_similarity_threshold
            )
        except Exception as e:
            logger.warning(
                "Knowledge ranking failed, using full corpus",
                extra={"error": str(e)}
            )
            ranked = []

        if ranked:
            context = ResponsePromptBuilder.ranked_context(ranked)
        else:
            context = ResponsePromptBuilder.corpus_context(corpus)

        logger.debug(
            "Knowledge context built",
            extra={"ranked": len(ranked), "corpus_size": len(corpus)}
        )

        try:
            text = await self._completion.complete(
                ResponsePromptBuilder.system_instruction(options.system_prompt, context),
                user_message,
                options.max_tokens
            )
        except LLMException as e:
            logger.warning(
                "Completion unavailable, answering from knowledge directly",
                extra={"error": e.message}
            )
            return self._lexical_answer(user_message, corpus)

        return self._or_fallback(text, options)

    async def _compose_without_knowledge(self, user_message: str, options: ComposeOptions) -> str:
        try:
            text = await self._completion.complete(
                options.system_prompt, user_message, options.max_tokens
            )
        except LLMException as e:
            logger.warning(
                "Completion unavailable and knowledge corpus is empty",
                extra={"error": e.message}
            )
            return TEMPORARILY_UNAVAILABLE_MESSAGE

        return self._or_fallback(text, options)

    def _lexical_answer(self, user_message: str, corpus: List[KnowledgeEntry]) -> str:
        matches = self._index.lexical_matches(user_message, corpus)
        if matches:
            return ResponsePromptBuilder.quote_entry(matches[0])
        return ResponsePromptBuilder.list_subjects(corpus)

    @staticmethod
    def _or_fallback(text: str, options: ComposeOptions) -> str:
        if text and text.strip():
            return text
        return options.fallback_message or CRITICAL_FAILURE_MESSAGE


class SentimentClassifier:
    """
    Classifies sentiment and urgency of a message.

    Any provider or parse failure yields neutral/medium with zero
    confidence.
    """

    def __init__(self, completion: ICompletionProvider):
        self._completion = completion

    async def classify(self, text: str) -> SentimentResult:
        try:
            raw = await self._completion.complete(
                SentimentPromptBuilder.SYSTEM_PROMPT,
                text,
                SENTIMENT_MAX_TOKENS,
                json_output=True
            )
        except Exception as e:
            logger.warning("Sentiment analysis failed", extra={"error": str(e)})
            return SentimentResult.fallback()

        result = SentimentPromptBuilder.parse(raw)
        logger.debug(
            "Sentiment classified",
            extra={
                "sentiment": result.sentiment,
                "urgency": result.urgency,
                "confidence": result.confidence
            }
        )
        return result
