"""
Database package: SQL schema, connection management, and the routing store.
"""

from .connection import DatabaseManager
from .schemas import (
    Base,
    RoutingExampleRecord,
    CorpusVersionRecord,
    CorpusPointer,
    RoutingFeedbackRecord,
    RoutingDecisionRecord,
    HandoffRecordRow
)
from .routing_store import RoutingStore

__all__ = [
    "DatabaseManager",
    "Base",
    "RoutingExampleRecord",
    "CorpusVersionRecord",
    "CorpusPointer",
    "RoutingFeedbackRecord",
    "RoutingDecisionRecord",
    "HandoffRecordRow",
    "RoutingStore"
]
