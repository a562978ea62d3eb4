"""
Deterministic lexical scoring against per-agent keyword tables.

Phrase hits weigh more than single-word hits. The best-scoring role wins and
ties go to the role declared first in AgentRole. Confidence grows linearly with
the score and is capped below the explicit-mention confidence.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from agent_routing.routing.agent_profiles import KEYWORD_TABLES, KeywordTable
from agent_routing.routing.explicit_matcher import EXPLICIT_CONFIDENCE
from agent_routing.routing.types import (
    AgentRole, RoutingDecision, RoutingSource, SPECIALISTS
)

logger = logging.getLogger(__name__)

_TOKEN_PATTERN = re.compile(r"[a-z0-9]+(?:'[a-z]+)?")


@dataclass
class KeywordScore:
    """Raw score for one role, kept for diagnostics and agreement checks."""
    role: AgentRole
    score: int
    matched_terms: List[str] = field(default_factory=list)


class KeywordScorer:
    """Keyword/phrase scorer over the specialist roles."""

    def __init__(
        self,
        tables: Optional[Dict[AgentRole, KeywordTable]] = None,
        phrase_weight: int = 3,
        word_weight: int = 1,
        min_score: int = 2,
        base_confidence: float = 0.65,
        score_step: float = 0.05,
        max_confidence: float = 0.95
    ):
        if phrase_weight <= word_weight:
            raise ValueError("Phrase weight must exceed word weight")
        if max_confidence >= EXPLICIT_CONFIDENCE:
            raise ValueError("Keyword confidence must stay below explicit confidence")

        self.phrase_weight = phrase_weight
        self.word_weight = word_weight
        self.min_score = min_score
        self.base_confidence = base_confidence
        self.score_step = score_step
        self.max_confidence = max_confidence
        self.phrase_patterns = self._compile_phrase_patterns(tables or KEYWORD_TABLES)
        self.word_sets = {
            role: frozenset(table.words)
            for role, table in (tables or KEYWORD_TABLES).items()
        }

    def _compile_phrase_patterns(
        self,
        tables: Dict[AgentRole, KeywordTable]
    ) -> Dict[AgentRole, List[Tuple[re.Pattern, str]]]:
        """Compile word-bounded phrase patterns per role."""
        compiled = {}
        for role, table in tables.items():
            compiled[role] = [
                (re.compile(rf"\b{re.escape(phrase)}\b"), phrase)
                for phrase in table.phrases
            ]
        return compiled

    def score_all(self, text: str) -> List[KeywordScore]:
        """Score every specialist role, in declaration order."""
        lowered = text.lower()
        tokens = set(_TOKEN_PATTERN.findall(lowered))

        scores = []
        for role in SPECIALISTS:
            result = KeywordScore(role=role, score=0)

            for pattern, phrase in self.phrase_patterns.get(role, []):
                if pattern.search(lowered):
                    result.score += self.phrase_weight
                    result.matched_terms.append(phrase)

            for word in sorted(self.word_sets.get(role, frozenset()) & tokens):
                result.score += self.word_weight
                result.matched_terms.append(word)

            scores.append(result)
        return scores

    def best(self, text: str) -> Optional[KeywordScore]:
        """Highest score; strict comparison keeps the earlier role on ties."""
        best_match = None
        for candidate in self.score_all(text):
            if candidate.score > 0 and (best_match is None or candidate.score > best_match.score):
                best_match = candidate
        return best_match

    def confidence_for(self, score: int) -> float:
        return min(self.max_confidence, self.base_confidence + score * self.score_step)

    def score(self, text: str) -> Optional[RoutingDecision]:
        """Return a keyword decision, or None below the minimum score."""
        best_match = self.best(text)
        if best_match is None or best_match.score < self.min_score:
            return None

        confidence = self.confidence_for(best_match.score)
        logger.debug(
            f"Keyword match {best_match.role.value}: score={best_match.score} "
            f"terms={best_match.matched_terms[:5]} confidence={confidence:.2f}"
        )

        return RoutingDecision(
            target_agent=best_match.role,
            confidence=confidence,
            rationale=f"Keyword match: {', '.join(best_match.matched_terms[:3])}",
            source=RoutingSource.KEYWORD
        )
