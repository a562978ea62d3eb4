"""
API endpoints package.
"""

from . import routing, feedback, admin

__all__ = ["routing", "feedback", "admin"]
