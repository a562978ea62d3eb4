"""
Prometheus metrics for routing, handoffs, feedback and the example corpus.
"""

import time
from contextlib import contextmanager
from typing import Dict, Optional

from prometheus_client import Counter, Gauge, Histogram, Info, generate_latest
from prometheus_client.core import CollectorRegistry

from agent_routing.utils.logging_config import get_logger

logger = get_logger(__name__)


class RoutingMetricsCollector:
    """
    Metrics for the routing core. Each instance owns its registry so several
    collectors (one per app, one per test) never clash on metric names.
    """

    def __init__(self, app_version: str = "unknown", environment: str = "production"):
        self.registry = CollectorRegistry()
        self._initialize_metrics()
        self.app_info.info({
            'version': app_version,
            'environment': environment
        })

    def _initialize_metrics(self):
        """Initialize Prometheus metrics."""

        # Routing
        self.routing_decisions_total = Counter(
            'routing_decisions_total',
            'Total routing decisions',
            ['source', 'agent'],
            registry=self.registry
        )

        self.routing_duration = Histogram(
            'routing_duration_seconds',
            'Time spent producing one routing decision',
            ['source'],
            registry=self.registry,
            buckets=[0.001, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0]
        )

        self.routing_confidence = Histogram(
            'routing_confidence_score',
            'Routing decision confidence scores',
            ['source'],
            registry=self.registry,
            buckets=[0.1, 0.2, 0.3, 0.4, 0.5, 0.6, 0.7, 0.8, 0.9, 0.95, 0.99, 1.0]
        )

        self.tier_failures_total = Counter(
            'routing_tier_failures_total',
            'Upstream failures absorbed by a routing tier',
            ['tier', 'reason'],
            registry=self.registry
        )

        # Handoffs
        self.handoffs_total = Counter(
            'handoffs_total',
            'Handoff attempts by outcome',
            ['from_agent', 'to_agent', 'outcome'],
            registry=self.registry
        )

        # Feedback
        self.feedback_total = Counter(
            'routing_feedback_total',
            'Feedback entries submitted',
            ['feedback_type'],
            registry=self.registry
        )

        self.feedback_promoted_total = Counter(
            'routing_feedback_promoted_total',
            'Feedback entries promoted into corpus examples',
            registry=self.registry
        )

        # Corpus
        self.corpus_version = Gauge(
            'routing_corpus_version',
            'Currently published example corpus version',
            registry=self.registry
        )

        self.corpus_size = Gauge(
            'routing_corpus_examples',
            'Examples in the current corpus snapshot',
            registry=self.registry
        )

        self.app_info = Info(
            'application_info',
            'Application information',
            registry=self.registry
        )

    def record_routing_decision(self, source: str, agent: str, confidence: float, duration: float):
        """Record one routing decision."""
        self.routing_decisions_total.labels(source=source, agent=agent).inc()
        self.routing_duration.labels(source=source).observe(duration)
        self.routing_confidence.labels(source=source).observe(confidence)

    def record_tier_failure(self, tier: str, reason: str):
        self.tier_failures_total.labels(tier=tier, reason=reason).inc()

    def record_handoff(self, from_agent: str, to_agent: str, outcome: str):
        self.handoffs_total.labels(
            from_agent=from_agent,
            to_agent=to_agent,
            outcome=outcome
        ).inc()

    def record_feedback(self, feedback_type: str):
        self.feedback_total.labels(feedback_type=feedback_type).inc()

    def record_feedback_promoted(self, count: int):
        if count > 0:
            self.feedback_promoted_total.inc(count)

    def update_corpus(self, version: int, size: int):
        """Track the snapshot readers currently see."""
        self.corpus_version.set(version)
        self.corpus_size.set(size)

    def get_prometheus_metrics(self) -> str:
        """Get metrics in Prometheus format."""
        return generate_latest(self.registry).decode('utf-8')


@contextmanager
def monitor_operation(operation_name: str, labels: Optional[Dict[str, str]] = None):
    """
    Log the duration and outcome of a block.

    Usage:
        with monitor_operation("process_feedback"):
            count = await loop.process_pending()
    """
    start_time = time.time()
    labels = labels or {}

    try:
        yield
        logger.info(
            f"Operation {operation_name} completed successfully",
            extra={
                "operation": operation_name,
                "duration": time.time() - start_time,
                "success": True,
                **labels
            }
        )

    except Exception as e:
        logger.error(
            f"Operation {operation_name} failed: {str(e)}",
            extra={
                "operation": operation_name,
                "duration": time.time() - start_time,
                "success": False,
                "error": str(e),
                **labels
            }
        )
        raise
