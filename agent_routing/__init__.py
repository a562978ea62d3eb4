"""
Agent routing and handoff service.
Routes free-text requests to specialist agents and governs handoffs between them.
"""

__version__ = "1.0.0"
