"""
Assistant Domain Layer
======================

Contains:
- Value objects: ComposeOptions, SentimentResult
- Prompt builders: ResponsePromptBuilder, SentimentPromptBuilder
"""

from assistant.domain.entities import (
    ComposeOptions,
    SentimentResult,
    ResponsePromptBuilder,
    SentimentPromptBuilder,
    SENTIMENT_LABELS,
    URGENCY_LABELS,
    TEMPORARILY_UNAVAILABLE_MESSAGE,
    CRITICAL_FAILURE_MESSAGE
)

__all__ = [
    "ComposeOptions",
    "SentimentResult",
    "ResponsePromptBuilder",
    "SentimentPromptBuilder",
    "SENTIMENT_LABELS",
    "URGENCY_LABELS",
    "TEMPORARILY_UNAVAILABLE_MESSAGE",
    "CRITICAL_FAILURE_MESSAGE",
]
