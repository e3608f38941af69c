"""
Support Module
==============

Bounded Context for the support ticket lifecycle.

Responsibilities:
- Open tickets from inbound chat messages, respecting the pause gate
- Govern bot responses through approval, rejection and delivery
- Record reaction feedback and derive satisfaction metrics
- Route chat platform events and expose the dashboard API
"""

__version__ = "1.0.0"
