"""
Routing package. The engine lives in ``route_engine``; the pure tiers and
shared types are re-exported here.
"""

from .types import (
    AgentRole,
    RoutingSource,
    RoutingDecision,
    RouteOptions,
    Deadline,
    COORDINATOR,
    SPECIALISTS,
    parse_role
)
from .explicit_matcher import ExplicitMentionMatcher
from .keyword_scorer import KeywordScorer

__all__ = [
    "AgentRole",
    "RoutingSource",
    "RoutingDecision",
    "RouteOptions",
    "Deadline",
    "COORDINATOR",
    "SPECIALISTS",
    "parse_role",
    "ExplicitMentionMatcher",
    "KeywordScorer"
]
