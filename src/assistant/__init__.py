"""
Assistant Module
================

Bounded Context for AI-generated content.

Responsibilities:
- Compose knowledge-grounded replies with layered fallbacks
- Classify message sentiment and urgency
"""

__version__ = "1.0.0"
