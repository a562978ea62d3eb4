"""
Nearest-neighbor routing over the example corpus.

The label is the majority vote of the k most similar examples. Confidence is
the mean similarity of the agreeing neighbors scaled by their share of the
vote, so both agreement and closeness raise it. Every failure (empty corpus,
store or embedding errors) yields None so later tiers still run.
"""

import logging
from collections import defaultdict
from typing import Dict, List, Optional, Tuple

from agent_routing.corpus.example_corpus import ExampleCorpus, RoutingExample
from agent_routing.exceptions import UpstreamError, UpstreamTimeout
from agent_routing.routing.types import (
    AgentRole, Deadline, RoutingDecision, RoutingSource
)
from agent_routing.utils.embedding_client import EmbeddingClient
from agent_routing.utils.monitoring import RoutingMetricsCollector

logger = logging.getLogger(__name__)

_ROLE_ORDER = {role: index for index, role in enumerate(AgentRole)}


class VectorRouter:
    """k-NN vote over the current corpus snapshot."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        corpus: ExampleCorpus,
        k: int = 5,
        min_similarity: float = 0.3,
        max_confidence: float = 0.95,
        metrics: Optional[RoutingMetricsCollector] = None
    ):
        if k < 1:
            raise ValueError("k must be at least 1")
        self.embedding_client = embedding_client
        self.corpus = corpus
        self.k = k
        self.min_similarity = min_similarity
        self.max_confidence = max_confidence
        self.metrics = metrics

    async def classify(self, text: str, deadline: Optional[Deadline] = None) -> Optional[RoutingDecision]:
        """Return a vector decision, or None when no usable neighbors exist."""
        # Store failures during refresh leave the previous (possibly empty) snapshot
        snapshot = await self.corpus.current_fresh()
        if snapshot.is_empty:
            logger.debug("Vector tier skipped, corpus is empty")
            return None

        timeout = deadline.clamp(None) if deadline else None
        try:
            vector = await self.embedding_client.embed(text, timeout=timeout)
        except UpstreamTimeout as e:
            logger.warning(f"Vector tier embedding timed out: {e}")
            self._record_failure("timeout")
            return None
        except UpstreamError as e:
            logger.warning(f"Vector tier embedding failed: {e}")
            self._record_failure("upstream_error")
            return None

        try:
            neighbors = snapshot.nearest(vector, self.k)
        except ValueError as e:
            logger.error(f"Vector tier dimension mismatch: {e}")
            self._record_failure("dimension_mismatch")
            return None

        neighbors = [(example, similarity) for example, similarity in neighbors
                     if similarity >= self.min_similarity]
        if not neighbors:
            return None

        role, agreeing = self._vote(neighbors)
        mean_similarity = sum(agreeing) / len(agreeing)
        agreement = len(agreeing) / len(neighbors)
        confidence = max(0.0, min(self.max_confidence, mean_similarity * agreement))

        logger.debug(
            f"Vector vote {role.value}: {len(agreeing)}/{len(neighbors)} neighbors, "
            f"mean similarity {mean_similarity:.3f}, corpus v{snapshot.version}"
        )

        return RoutingDecision(
            target_agent=role,
            confidence=confidence,
            rationale=(
                f"Similar to {len(agreeing)} of {len(neighbors)} labeled examples "
                f"(mean similarity {mean_similarity:.2f})"
            ),
            source=RoutingSource.VECTOR
        )

    def _vote(self, neighbors: List[Tuple[RoutingExample, float]]) -> Tuple[AgentRole, List[float]]:
        """Majority label; ties go to higher summed similarity, then declaration order."""
        similarities: Dict[AgentRole, List[float]] = defaultdict(list)
        for example, similarity in neighbors:
            similarities[example.label].append(similarity)

        winner = min(
            similarities,
            key=lambda role: (-len(similarities[role]), -sum(similarities[role]), _ROLE_ORDER[role])
        )
        return winner, similarities[winner]

    def _record_failure(self, reason: str):
        if self.metrics:
            self.metrics.record_tier_failure("vector", reason)
