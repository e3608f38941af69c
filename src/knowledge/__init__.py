"""
Knowledge Module
================

Bounded Context for the operator-authored knowledge corpus.

Responsibilities:
- Store knowledge entries (subject + information) with their embeddings
- Rank entries by semantic relevance to a query
- Lexical containment matching when embeddings are unavailable
"""

__version__ = "1.0.0"
