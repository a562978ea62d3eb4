"""
Tiered routing engine.

Tiers run in a fixed order (explicit mention, keyword, vector, classifier,
fallback) and the first one that clears its threshold answers. A classifier
answer that agrees with the keyword guess is boosted. ``route()`` always
returns a decision; only invalid input raises.
"""

import logging
import time
from typing import Optional, Union

from agent_routing.exceptions import ValidationError
from agent_routing.routing.classifier_oracle import ClassifierOracle
from agent_routing.routing.explicit_matcher import ExplicitMentionMatcher
from agent_routing.routing.keyword_scorer import KeywordScorer
from agent_routing.routing.types import (
    AgentRole, COORDINATOR, Deadline, RouteOptions, RoutingDecision, RoutingSource, parse_role
)
from agent_routing.routing.vector_router import VectorRouter
from agent_routing.utils.logging_config import log_routing_decision
from agent_routing.utils.monitoring import RoutingMetricsCollector

logger = logging.getLogger(__name__)

CONFIRMED_SUFFIX = " (confirmed by keyword match)"


class RoutingEngine:
    """
    Multi-tier router: explicit mention, keyword scoring, nearest-neighbor
    vote, LLM classifier, then fallback to the coordinator.

    Tiers run sequentially and the first one that clears its threshold wins.
    The engine only classifies text; deciding whether a decision means a
    handoff is left to HandoffProtocol.
    """

    def __init__(
        self,
        explicit_matcher: Optional[ExplicitMentionMatcher] = None,
        keyword_scorer: Optional[KeywordScorer] = None,
        vector_router: Optional[VectorRouter] = None,
        oracle: Optional[ClassifierOracle] = None,
        keyword_threshold: float = 0.8,
        vector_threshold: float = 0.8,
        agreement_boost: float = 0.10,
        max_boosted_confidence: float = 0.99,
        fallback_confidence: float = 0.5,
        route_timeout_seconds: Optional[float] = 15.0,
        metrics: Optional[RoutingMetricsCollector] = None
    ):
        if not max_boosted_confidence < 1.0:
            raise ValueError("Boosted confidence must stay below 1.0")

        self.explicit_matcher = explicit_matcher or ExplicitMentionMatcher()
        self.keyword_scorer = keyword_scorer or KeywordScorer()
        self.vector_router = vector_router
        self.oracle = oracle
        self.keyword_threshold = keyword_threshold
        self.vector_threshold = vector_threshold
        self.agreement_boost = agreement_boost
        self.max_boosted_confidence = max_boosted_confidence
        self.fallback_confidence = fallback_confidence
        self.route_timeout_seconds = route_timeout_seconds
        self.metrics = metrics

    @property
    def classifier_enabled(self) -> bool:
        return self.oracle is not None

    async def route(
        self,
        text: str,
        current_role: Optional[Union[AgentRole, str]] = None,
        options: Optional[RouteOptions] = None
    ) -> RoutingDecision:
        """
        Route ``text`` to an agent. Always returns a decision; only invalid
        input raises.

        Raises:
            ValidationError: empty text, unknown current_role, or contradictory options
        """
        if not isinstance(text, str) or not text.strip():
            raise ValidationError("Text to route must be a non-empty string", field="text")
        if current_role is not None:
            current_role = parse_role(current_role, "current_role")

        options = options or RouteOptions()
        if options.skip_classifier and options.force_classifier:
            raise ValidationError(
                "skip_classifier and force_classifier are mutually exclusive",
                field="options"
            )
        if options.keyword_threshold is not None and not 0.0 <= options.keyword_threshold <= 1.0:
            raise ValidationError("keyword_threshold must be within [0, 1]", field="keyword_threshold")

        timeout = options.timeout_seconds if options.timeout_seconds is not None else self.route_timeout_seconds
        deadline = Deadline(timeout)
        start_time = time.time()

        decision = await self._decide(text, options, deadline)

        processing_time = time.time() - start_time
        if self.metrics:
            self.metrics.record_routing_decision(
                source=decision.source.value,
                agent=decision.target_agent.value,
                confidence=decision.confidence,
                duration=processing_time
            )
        log_routing_decision(
            query=text,
            target_agent=decision.target_agent.value,
            source=decision.source.value,
            confidence=decision.confidence,
            processing_time=processing_time,
            current_role=current_role.value if current_role else None
        )
        return decision

    async def _decide(self, text: str, options: RouteOptions, deadline: Deadline) -> RoutingDecision:
        # 1. Explicit intent is authoritative
        explicit = self.explicit_matcher.match(text)
        if explicit:
            return explicit

        # 2. Keyword scoring
        keyword = self.keyword_scorer.score(text)
        threshold = options.keyword_threshold if options.keyword_threshold is not None else self.keyword_threshold
        qualified: Optional[RoutingDecision] = None
        if keyword and keyword.confidence >= threshold:
            if not options.force_classifier:
                return keyword
            qualified = keyword

        # 3. Nearest-neighbor vote
        if self.vector_router and qualified is None:
            if deadline.expired:
                self._record_deadline("vector")
            else:
                vector = await self.vector_router.classify(text, deadline)
                if vector and vector.confidence >= self.vector_threshold:
                    if not options.force_classifier:
                        return vector
                    qualified = vector

        # 4. Classifier oracle
        if self.oracle and not options.skip_classifier:
            if deadline.expired:
                self._record_deadline("classifier")
            else:
                oracle_decision = await self.oracle.classify(text, deadline)
                if oracle_decision.source is RoutingSource.FALLBACK:
                    return qualified or oracle_decision
                return self._combine(oracle_decision, keyword)

        if qualified:
            return qualified

        # 5. Nothing usable
        return self.fallback(
            "No tier produced a confident decision" if keyword is None
            else f"Keyword guess {keyword.target_agent.value} ({keyword.confidence:.2f}) below threshold"
        )

    def _combine(self, oracle_decision: RoutingDecision, keyword: Optional[RoutingDecision]) -> RoutingDecision:
        """Reconcile the classifier with the keyword tier's best guess."""
        if keyword is None:
            return oracle_decision

        if keyword.target_agent is oracle_decision.target_agent:
            return oracle_decision.with_update(
                confidence=min(self.max_boosted_confidence, oracle_decision.confidence + self.agreement_boost),
                rationale=f"{oracle_decision.rationale}{CONFIRMED_SUFFIX}"
            )

        if oracle_decision.confidence > keyword.confidence:
            return oracle_decision

        logger.debug(
            f"Keyword guess {keyword.target_agent.value} ({keyword.confidence:.2f}) outranks "
            f"classifier {oracle_decision.target_agent.value} ({oracle_decision.confidence:.2f})"
        )
        return keyword

    def fallback(self, reason: str) -> RoutingDecision:
        return RoutingDecision(
            target_agent=COORDINATOR,
            confidence=self.fallback_confidence,
            rationale=f"{reason}, defaulting to {COORDINATOR.value}",
            source=RoutingSource.FALLBACK
        )

    def _record_deadline(self, tier: str):
        logger.warning(f"Route deadline expired before the {tier} tier")
        if self.metrics:
            self.metrics.record_tier_failure(tier, "deadline")
