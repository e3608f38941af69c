"""
Shared Kernel Module
====================

Shared infrastructure used across all bounded contexts (Knowledge,
Assistant and Support).

Architecture Pattern: Modular Monolith
- Each module (knowledge, assistant, support) is a bounded context
- Shared kernel contains only generic infrastructure

DO NOT add ticket, knowledge or response logic to the shared kernel.
"""

__version__ = "1.0.0"
