"""
Assistant Infrastructure Layer
===============================

Contains:
- External: Completion provider adapter
"""

from assistant.infrastructure.external import CompletionProviderAdapter

__all__ = ["CompletionProviderAdapter"]
