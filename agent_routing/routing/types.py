"""
Shared routing types: the closed agent role set, routing decisions, and the
per-call options and deadline that flow through every tier.
"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterable, Mapping, Optional

from agent_routing.exceptions import ValidationError


class AgentRole(str, Enum):
    """Fixed specialist identities plus the coordinating role."""
    ORCHESTRATOR = "orchestrator"
    CODER = "coder"
    RESEARCHER = "researcher"
    SECRETARY = "secretary"
    PERSONALITY = "personality"
    HOME = "home"
    FINANCE = "finance"
    IMAGEGEN = "imagegen"


class RoutingSource(str, Enum):
    """Tier that produced a routing decision."""
    EXPLICIT = "explicit"
    KEYWORD = "keyword"
    VECTOR = "vector"
    CLASSIFIER = "classifier"
    FALLBACK = "fallback"


COORDINATOR = AgentRole.ORCHESTRATOR

# Declaration order doubles as the deterministic tie-break order.
SPECIALISTS = tuple(role for role in AgentRole if role is not COORDINATOR)


def parse_role(value: Any, field_name: str = "agent") -> AgentRole:
    """Convert a string (or role) into an AgentRole, rejecting unknown values."""
    if isinstance(value, AgentRole):
        return value
    if isinstance(value, str):
        try:
            return AgentRole(value.strip().lower())
        except ValueError:
            pass
    raise ValidationError(f"Unknown agent role: {value!r}", field=field_name)


def is_specialist(role: AgentRole) -> bool:
    return role is not COORDINATOR


def require_all_roles(table: Mapping[AgentRole, Any], name: str,
                      roles: Iterable[AgentRole] = AgentRole) -> None:
    """
    Fail at import time when a per-role table misses a role, so adding a role
    to AgentRole breaks every table that has to handle it.
    """
    missing = [role.value for role in roles if role not in table]
    if missing:
        raise RuntimeError(f"{name} is missing entries for roles: {', '.join(missing)}")


@dataclass(frozen=True)
class RoutingDecision:
    """Immutable result of routing one request."""
    target_agent: AgentRole
    confidence: float
    rationale: str
    source: RoutingSource

    def __post_init__(self):
        if not isinstance(self.target_agent, AgentRole):
            object.__setattr__(self, "target_agent", parse_role(self.target_agent, "target_agent"))
        if not isinstance(self.source, RoutingSource):
            try:
                object.__setattr__(self, "source", RoutingSource(self.source))
            except ValueError:
                raise ValidationError(f"Unknown routing source: {self.source!r}", field="source")
        if not 0.0 <= self.confidence <= 1.0:
            raise ValidationError(
                f"Confidence must be within [0, 1], got {self.confidence}",
                field="confidence"
            )

    def with_update(self, **changes) -> "RoutingDecision":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_agent": self.target_agent.value,
            "confidence": round(self.confidence, 4),
            "rationale": self.rationale,
            "source": self.source.value,
        }


@dataclass
class RouteOptions:
    """Per-call routing switches."""
    skip_classifier: bool = False
    force_classifier: bool = False
    keyword_threshold: Optional[float] = None
    timeout_seconds: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


class Deadline:
    """
    Absolute deadline for a single route() call. Tiers ask for the remaining
    budget before every blocking call so total latency stays bounded.
    """

    def __init__(self, seconds: Optional[float]):
        self._expires_at = None if seconds is None else time.monotonic() + seconds

    @property
    def expired(self) -> bool:
        return self._expires_at is not None and time.monotonic() >= self._expires_at

    def remaining(self) -> Optional[float]:
        if self._expires_at is None:
            return None
        return max(0.0, self._expires_at - time.monotonic())

    def clamp(self, timeout: Optional[float]) -> Optional[float]:
        """Return the smaller of ``timeout`` and the time left."""
        remaining = self.remaining()
        if remaining is None:
            return timeout
        if timeout is None:
            return remaining
        return min(timeout, remaining)
