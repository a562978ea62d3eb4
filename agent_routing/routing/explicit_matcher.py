"""
Explicit mention matcher.

Recognizes direct addressing such as "ask the coder to ...", "have DevBot ...",
"get the secretary to ..." or "@researcher". A match is authoritative: it
outranks every other tier.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from agent_routing.routing.agent_profiles import AGENT_PROFILES, AgentProfile
from agent_routing.routing.types import AgentRole, RoutingDecision, RoutingSource

logger = logging.getLogger(__name__)

EXPLICIT_CONFIDENCE = 0.99


class ExplicitMentionMatcher:
    """Case-insensitive literal-address recognizer over the agent catalogue."""

    def __init__(
        self,
        profiles: Optional[Dict[AgentRole, AgentProfile]] = None,
        confidence: float = EXPLICIT_CONFIDENCE
    ):
        if confidence < EXPLICIT_CONFIDENCE:
            raise ValueError(f"Explicit confidence must be at least {EXPLICIT_CONFIDENCE}")
        self.confidence = min(confidence, 1.0)
        self.patterns = self._compile_patterns(profiles or AGENT_PROFILES)

    def _compile_patterns(
        self,
        profiles: Dict[AgentRole, AgentProfile]
    ) -> List[Tuple[re.Pattern, AgentRole]]:
        """Compile one addressing pattern and one @-handle pattern per role."""
        patterns = []
        for role, profile in profiles.items():
            aliases = "|".join(profile.aliases)
            patterns.append((
                re.compile(
                    rf"\b(?:(?:ask|have|let)\s+(?:the\s+)?|get\s+the\s+)(?:{aliases})\b",
                    re.IGNORECASE
                ),
                role
            ))
            handles = "|".join(re.escape(handle) for handle in profile.handles)
            patterns.append((
                re.compile(rf"(?<![\w@])@(?:{handles})\b", re.IGNORECASE),
                role
            ))
        return patterns

    def match(self, text: str) -> Optional[RoutingDecision]:
        """
        Return an explicit decision, or None when nobody is addressed.
        When several roles are addressed the earliest mention wins.
        """
        earliest = None
        for pattern, role in self.patterns:
            found = pattern.search(text)
            if found and (earliest is None or found.start() < earliest[0]):
                earliest = (found.start(), role)

        if earliest is None:
            return None

        role = earliest[1]
        logger.debug(f"Explicit mention of {role.value} at offset {earliest[0]}")
        return RoutingDecision(
            target_agent=role,
            confidence=self.confidence,
            rationale=f"Explicit request to use {role.value} agent",
            source=RoutingSource.EXPLICIT
        )
