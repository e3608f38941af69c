"""
Support Interfaces Layer
=========================

Contains:
- Controllers: FastAPI route handlers
"""

from support.interfaces.controllers import support_router

__all__ = ["support_router"]
