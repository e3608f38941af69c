"""
Assistant Application Layer
============================

Contains:
- Services: ResponseComposer, SentimentClassifier
- Interfaces: ICompletionProvider
"""

from assistant.application.services import (
    ResponseComposer,
    SentimentClassifier,
    ICompletionProvider
)

__all__ = [
    "ResponseComposer",
    "SentimentClassifier",
    "ICompletionProvider",
]
