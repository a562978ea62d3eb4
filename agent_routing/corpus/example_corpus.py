"""
Versioned example corpus for nearest-neighbor routing.

Readers call ``current()`` and get an immutable CorpusSnapshot. Writers never
touch a live snapshot: they publish a new version through the store (an atomic
pointer swap) and then replace the in-process reference in one assignment.
"""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from agent_routing.database.routing_store import RoutingStore
from agent_routing.exceptions import ConcurrencyConflict, CorpusUnavailable, ValidationError
from agent_routing.routing.types import AgentRole, parse_role
from agent_routing.utils.monitoring import RoutingMetricsCollector

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoutingExample:
    id: int
    text: str
    embedding: Tuple[float, ...]
    label: AgentRole
    created_at: Optional[datetime] = None


@dataclass
class CorpusChanges:
    """Changes applied by one publish."""
    new_examples: List[Dict] = field(default_factory=list)
    retire_ids: List[int] = field(default_factory=list)
    embedding_updates: Dict[int, List[float]] = field(default_factory=dict)
    processed_feedback_ids: List[int] = field(default_factory=list)

    @property
    def empty(self) -> bool:
        return not (self.new_examples or self.retire_ids or self.embedding_updates
                    or self.processed_feedback_ids)


class CorpusSnapshot:
    """Immutable view of one corpus version with a pre-normalized matrix."""

    def __init__(self, version: int, examples: Sequence[RoutingExample]):
        self.version = version
        self.examples = tuple(examples)
        if self.examples:
            matrix = np.asarray([example.embedding for example in self.examples], dtype=np.float32)
            norms = np.linalg.norm(matrix, axis=1, keepdims=True)
            norms[norms == 0] = 1.0
            self._matrix = matrix / norms
            self._matrix.setflags(write=False)
        else:
            self._matrix = None

    @classmethod
    def empty(cls, version: int = 0) -> "CorpusSnapshot":
        return cls(version, ())

    @property
    def is_empty(self) -> bool:
        return not self.examples

    @property
    def dimension(self) -> Optional[int]:
        return None if self._matrix is None else self._matrix.shape[1]

    def __len__(self) -> int:
        return len(self.examples)

    def nearest(self, vector: Sequence[float], k: int) -> List[Tuple[RoutingExample, float]]:
        """Top-k examples by cosine similarity, most similar first."""
        if self._matrix is None or k <= 0:
            return []

        query = np.asarray(vector, dtype=np.float32)
        if query.shape != (self._matrix.shape[1],):
            raise ValueError(
                f"Query has dimension {query.shape}, corpus has {self._matrix.shape[1]}"
            )
        norm = np.linalg.norm(query)
        if norm == 0:
            return []

        similarities = self._matrix @ (query / norm)
        k = min(k, len(self.examples))
        # Stable sort keeps lower ids first among equal similarities
        order = np.argsort(-similarities, kind="stable")[:k]
        return [(self.examples[i], float(similarities[i])) for i in order]

    def label_counts(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for example in self.examples:
            counts[example.label.value] = counts.get(example.label.value, 0) + 1
        return counts


PrepareChanges = Callable[[CorpusSnapshot], Awaitable[Optional[CorpusChanges]]]


class ExampleCorpus:
    """Holds the current snapshot and publishes new versions."""

    def __init__(
        self,
        store: RoutingStore,
        dimension: Optional[int] = None,
        publish_retries: int = 3,
        metrics: Optional[RoutingMetricsCollector] = None,
        refresh_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        self.store = store
        self.dimension = dimension
        self.publish_retries = publish_retries
        self.metrics = metrics
        self.refresh_interval = refresh_interval
        self.clock = clock
        self._snapshot = CorpusSnapshot.empty()
        self._next_check = 0.0

    def current(self) -> CorpusSnapshot:
        """Current snapshot; safe to hold across awaits."""
        return self._snapshot

    async def current_fresh(self) -> CorpusSnapshot:
        """
        Current snapshot, first picking up versions published elsewhere (other
        workers, the setup script) at most once per ``refresh_interval``.
        A store outage keeps serving the snapshot already held.
        """
        if self.refresh_interval is None:
            return self._snapshot

        now = self.clock()
        if now < self._next_check:
            return self._snapshot
        # Claim the check before awaiting so concurrent readers skip it
        self._next_check = now + self.refresh_interval

        try:
            await self.refresh()
        except CorpusUnavailable as e:
            logger.warning(f"Corpus refresh failed, serving version {self._snapshot.version}: {e}")
        return self._snapshot

    def _swap(self, snapshot: CorpusSnapshot):
        # Never move backwards when refreshes race
        if snapshot.version < self._snapshot.version:
            return
        self._snapshot = snapshot
        if self.metrics:
            self.metrics.update_corpus(snapshot.version, len(snapshot))

    async def refresh(self) -> CorpusSnapshot:
        """
        Reload the published version from the store.

        Raises:
            CorpusUnavailable: the store could not be read
        """
        try:
            version = await self.store.get_current_version()
            if version == self._snapshot.version and version != 0:
                return self._snapshot
            rows = await self.store.load_examples(version)
        except Exception as e:
            logger.error(f"Failed to load example corpus: {e}")
            raise CorpusUnavailable(str(e)) from e

        examples = []
        for row in rows:
            try:
                label = parse_role(row.label, "label")
            except ValidationError:
                logger.error(f"Skipping example {row.id} with unknown label {row.label!r}")
                continue
            if self.dimension is not None and len(row.embedding) != self.dimension:
                logger.error(
                    f"Skipping example {row.id}: embedding has {len(row.embedding)} "
                    f"dimensions, expected {self.dimension}"
                )
                continue
            examples.append(RoutingExample(
                id=row.id,
                text=row.text,
                embedding=tuple(float(value) for value in row.embedding),
                label=label,
                created_at=row.created_at
            ))

        snapshot = CorpusSnapshot(version, examples)
        self._swap(snapshot)
        logger.info(f"Loaded corpus version {version} with {len(snapshot)} examples")
        return self._snapshot

    async def publish(self, prepare: PrepareChanges, note: Optional[str] = None) -> Optional[int]:
        """
        Compute changes against a fresh snapshot and publish them as the next
        version. ``prepare`` runs again on every ConcurrencyConflict, so the
        changes always target the version that is actually current.

        Returns the new version, or None when ``prepare`` had nothing to do.
        """
        last_conflict = None
        for attempt in range(self.publish_retries + 1):
            snapshot = await self.refresh()
            changes = await prepare(snapshot)
            if changes is None or changes.empty:
                return None

            try:
                version = await self.store.publish_version(
                    expected_version=snapshot.version,
                    new_examples=changes.new_examples,
                    retire_ids=changes.retire_ids,
                    embedding_updates=changes.embedding_updates,
                    processed_feedback_ids=changes.processed_feedback_ids,
                    note=note
                )
            except ConcurrencyConflict as e:
                last_conflict = e
                logger.warning(
                    f"Corpus publish conflict (attempt {attempt + 1}/{self.publish_retries + 1}): {e}"
                )
                continue

            await self.refresh()
            return version

        raise last_conflict

    async def retire_examples(self, example_ids: Sequence[int]) -> int:
        """Publish a version without the given examples; returns how many were live."""
        wanted = set(example_ids)
        retired = {"count": 0}

        async def prepare(snapshot: CorpusSnapshot) -> Optional[CorpusChanges]:
            # Examples still waiting for an embedding are not in the snapshot
            pending = await self.store.get_examples_missing_embeddings(snapshot.version)
            live = {example.id for example in snapshot.examples} | {row.id for row in pending}
            targets = sorted(wanted & live)
            retired["count"] = len(targets)
            if not targets:
                return None
            return CorpusChanges(retire_ids=targets)

        version = await self.publish(prepare, note=f"retired {len(wanted)} examples")
        if version is None:
            logger.info(f"No live examples among {sorted(wanted)}; nothing retired")
            return 0
        return retired["count"]
