"""
Feedback intake and corpus promotion.

``submit`` stores user corrections. ``process_pending`` is a scheduled batch
job that folds incorrect/improved feedback into a new corpus version; it is
single-flight within the process (asyncio.Lock) and, when Redis is
configured, across processes (redis lock).
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, AsyncIterator, Dict, Optional, Union

from agent_routing.corpus.example_corpus import CorpusChanges, CorpusSnapshot, ExampleCorpus
from agent_routing.database.routing_store import RoutingStore
from agent_routing.database.schemas import utcnow
from agent_routing.exceptions import UpstreamError, ValidationError
from agent_routing.routing.types import AgentRole, RoutingSource, parse_role
from agent_routing.utils.embedding_client import EmbeddingClient
from agent_routing.utils.logging_config import log_feedback_event
from agent_routing.utils.monitoring import RoutingMetricsCollector

logger = logging.getLogger(__name__)


class FeedbackType(str, Enum):
    CORRECT = "correct"
    INCORRECT = "incorrect"
    IMPROVED = "improved"
    TOOL_FAILURE = "tool_failure"
    SLOW = "slow"


PROMOTABLE_TYPES = (FeedbackType.INCORRECT, FeedbackType.IMPROVED)


@dataclass
class FeedbackEntry:
    original_query: str
    selected_agent: AgentRole
    routing_confidence: float
    routing_source: RoutingSource
    feedback_type: FeedbackType
    correct_agent: Optional[AgentRole] = None
    user_comment: Optional[str] = None
    user_id: Optional[str] = None
    thread_id: Optional[str] = None
    id: Optional[int] = None
    processed_at: Optional[datetime] = None

    @classmethod
    def create(
        cls,
        original_query: str,
        selected_agent: Union[AgentRole, str],
        routing_confidence: float,
        routing_source: Union[RoutingSource, str],
        feedback_type: Union[FeedbackType, str],
        correct_agent: Optional[Union[AgentRole, str]] = None,
        user_comment: Optional[str] = None,
        user_id: Optional[str] = None,
        thread_id: Optional[str] = None
    ) -> "FeedbackEntry":
        """
        Validate raw values into an entry.

        Raises:
            ValidationError: unknown role/source/type, confidence outside
                [0, 1], empty query, or a missing correct_agent for
                incorrect/improved feedback
        """
        if not isinstance(original_query, str) or not original_query.strip():
            raise ValidationError("original_query must be a non-empty string", field="original_query")

        try:
            feedback_type = FeedbackType(feedback_type)
        except ValueError:
            raise ValidationError(f"Unknown feedback type: {feedback_type!r}", field="feedback_type")

        try:
            routing_source = RoutingSource(routing_source)
        except ValueError:
            raise ValidationError(f"Unknown routing source: {routing_source!r}", field="routing_source")

        if isinstance(routing_confidence, bool) or not isinstance(routing_confidence, (int, float)) \
                or not 0.0 <= routing_confidence <= 1.0:
            raise ValidationError("routing_confidence must be within [0, 1]", field="routing_confidence")

        selected = parse_role(selected_agent, "selected_agent")
        correct = parse_role(correct_agent, "correct_agent") if correct_agent is not None else None
        if feedback_type in PROMOTABLE_TYPES and correct is None:
            raise ValidationError(
                f"correct_agent is required for {feedback_type.value} feedback",
                field="correct_agent"
            )

        return cls(
            original_query=original_query.strip(),
            selected_agent=selected,
            routing_confidence=float(routing_confidence),
            routing_source=routing_source,
            feedback_type=feedback_type,
            correct_agent=correct,
            user_comment=user_comment,
            user_id=user_id,
            thread_id=thread_id
        )


class FeedbackLoop:
    """Feedback submission, promotion into the corpus, and routing stats."""

    def __init__(
        self,
        store: RoutingStore,
        corpus: ExampleCorpus,
        embedding_client: Optional[EmbeddingClient] = None,
        redis_client: Any = None,
        lock_name: str = "agent_routing:process_pending_feedback",
        lock_timeout: int = 300,
        stats_window_days: int = 7,
        metrics: Optional[RoutingMetricsCollector] = None
    ):
        self.store = store
        self.corpus = corpus
        self.embedding_client = embedding_client
        self.redis_client = redis_client
        self.lock_name = lock_name
        self.lock_timeout = lock_timeout
        self.stats_window_days = stats_window_days
        self.metrics = metrics
        self._process_lock = asyncio.Lock()

    async def submit(self, entry: FeedbackEntry) -> int:
        """Persist an unprocessed entry and return its id."""
        if entry.feedback_type in PROMOTABLE_TYPES and entry.correct_agent is None:
            raise ValidationError(
                f"correct_agent is required for {entry.feedback_type.value} feedback",
                field="correct_agent"
            )

        feedback_id = await self.store.insert_feedback({
            "original_query": entry.original_query,
            "selected_agent": entry.selected_agent.value,
            "routing_confidence": entry.routing_confidence,
            "routing_source": entry.routing_source.value,
            "feedback_type": entry.feedback_type.value,
            "correct_agent": entry.correct_agent.value if entry.correct_agent else None,
            "user_comment": entry.user_comment,
            "user_id": entry.user_id,
            "thread_id": entry.thread_id
        })

        if self.metrics:
            self.metrics.record_feedback(entry.feedback_type.value)
        log_feedback_event("submitted", {
            "id": feedback_id,
            "feedback_type": entry.feedback_type.value,
            "selected_agent": entry.selected_agent.value,
            "correct_agent": entry.correct_agent.value if entry.correct_agent else None
        })
        return feedback_id

    @asynccontextmanager
    async def _single_flight(self, name: str) -> AsyncIterator[bool]:
        """
        Yield True when this caller holds the batch lock, False when another
        run is already in progress.
        """
        if self._process_lock.locked():
            yield False
            return

        async with self._process_lock:
            if self.redis_client is None:
                yield True
                return

            lock = self.redis_client.lock(f"{self.lock_name}:{name}", timeout=self.lock_timeout)
            acquired = await lock.acquire(blocking=False)
            if not acquired:
                yield False
                return
            try:
                yield True
            finally:
                await lock.release()

    async def process_pending(self) -> int:
        """
        Promote unprocessed incorrect/improved feedback into one new corpus
        version. Returns the number of entries promoted; 0 when there is
        nothing to do or another run holds the lock.
        """
        async with self._single_flight("process") as acquired:
            if not acquired:
                logger.info("Feedback processing already running; skipping")
                return 0

            promoted = {"count": 0}

            async def prepare(snapshot: CorpusSnapshot) -> Optional[CorpusChanges]:
                pending = await self.store.get_pending_feedback([t.value for t in PROMOTABLE_TYPES])
                changes = CorpusChanges()
                for row in pending:
                    try:
                        label = parse_role(row.correct_agent, "correct_agent")
                    except ValidationError as e:
                        logger.error(f"Feedback {row.id} cannot be promoted: {e}")
                        continue
                    changes.new_examples.append({
                        "text": row.original_query,
                        "label": label.value,
                        "embedding": await self._embed_or_none(row.original_query),
                        "source_feedback_id": row.id
                    })
                    changes.processed_feedback_ids.append(row.id)
                promoted["count"] = len(changes.new_examples)
                return changes

            version = await self.corpus.publish(prepare, note="feedback promotion")
            if version is None:
                return 0

            count = promoted["count"]
            if self.metrics:
                self.metrics.record_feedback_promoted(count)
            log_feedback_event("promoted", {"count": count, "corpus_version": version})
            return count

    async def _embed_or_none(self, text: str) -> Optional[list]:
        """Embedding for a new example; missing ones are back-filled later."""
        if self.embedding_client is None:
            return None
        try:
            return await self.embedding_client.embed(text)
        except UpstreamError as e:
            logger.warning(f"Embedding deferred for promoted example: {e}")
            return None

    async def seed_example_embeddings(self) -> int:
        """
        Back-fill embeddings for every current example missing one and
        publish them as a new version. Returns the number back-filled.
        """
        if self.embedding_client is None:
            raise ValidationError("No embedding client configured", field="embedding_client")

        async with self._single_flight("seed") as acquired:
            if not acquired:
                logger.info("Corpus maintenance already running; skipping embedding seed")
                return 0

            seeded = {"count": 0}

            async def prepare(snapshot: CorpusSnapshot) -> Optional[CorpusChanges]:
                missing = await self.store.get_examples_missing_embeddings(snapshot.version)
                changes = CorpusChanges()
                for row in missing:
                    try:
                        changes.embedding_updates[row.id] = await self.embedding_client.embed(row.text)
                    except UpstreamError as e:
                        logger.warning(f"Could not embed example {row.id}: {e}")
                seeded["count"] = len(changes.embedding_updates)
                return changes

            version = await self.corpus.publish(prepare, note="embedding back-fill")
            if version is None:
                return 0

            log_feedback_event("embeddings_seeded", {"count": seeded["count"], "corpus_version": version})
            return seeded["count"]

    async def get_routing_stats(self, days: Optional[int] = None) -> Dict[str, Any]:
        """Read-only aggregate over recent decisions and feedback."""
        days = days if days is not None else self.stats_window_days
        if days < 1:
            raise ValidationError("days must be at least 1", field="days")

        since = utcnow() - timedelta(days=days)
        decisions = await self.store.get_decision_counts(since)
        feedback = await self.store.get_feedback_counts(since, [t.value for t in PROMOTABLE_TYPES])

        by_type = feedback["by_type"]
        judged = sum(by_type.get(t.value, 0) for t in (FeedbackType.CORRECT,) + PROMOTABLE_TYPES)
        accuracy = by_type.get(FeedbackType.CORRECT.value, 0) / judged if judged else None

        snapshot = self.corpus.current()
        return {
            "window_days": days,
            "total_decisions": sum(decisions["by_agent"].values()),
            "decisions_by_agent": decisions["by_agent"],
            "decisions_by_source": decisions["by_source"],
            "avg_confidence": decisions["avg_confidence"],
            "avg_latency_ms": decisions["avg_latency_ms"],
            "feedback_by_type": by_type,
            "accuracy": accuracy,
            "pending_feedback": feedback["pending"],
            "corpus_version": snapshot.version,
            "corpus_size": len(snapshot)
        }
