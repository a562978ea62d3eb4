"""Tests for nearest-neighbor routing over corpus snapshots."""

import pytest

from agent_routing.corpus.example_corpus import CorpusSnapshot, RoutingExample
from agent_routing.routing.types import AgentRole, RoutingSource
from agent_routing.routing.vector_router import VectorRouter
from agent_routing.utils.embedding_client import EmbeddingClient

from .conftest import EMBEDDING_DIM, HashingBackend, StaticCorpus, build_snapshot


def make_router(snapshot: CorpusSnapshot, backend=None, **kwargs) -> VectorRouter:
    client = EmbeddingClient(backend or HashingBackend(), dimension=EMBEDDING_DIM, timeout_seconds=0.5)
    return VectorRouter(client, StaticCorpus(snapshot), **kwargs)


def example(example_id: int, label: AgentRole) -> RoutingExample:
    return RoutingExample(id=example_id, text=f"example {example_id}", embedding=(1.0, 0.0), label=label)


class TestVectorRouter:

    async def test_majority_vote(self):
        snapshot = await build_snapshot([
            ("turn off the lights", AgentRole.HOME),
            ("turn on the lights", AgentRole.HOME),
            ("dim the lights", AgentRole.HOME),
            ("what bills are due", AgentRole.FINANCE),
        ])
        router = make_router(snapshot, k=3)

        decision = await router.classify("turn off the lights")

        assert decision.target_agent is AgentRole.HOME
        assert decision.source is RoutingSource.VECTOR
        assert 0.5 < decision.confidence <= 0.95
        assert "3 of 3" in decision.rationale

    async def test_confidence_is_capped(self):
        snapshot = await build_snapshot([("lock the front door", AgentRole.HOME)])
        router = make_router(snapshot, k=1, max_confidence=0.9)

        decision = await router.classify("lock the front door")

        assert decision.confidence == pytest.approx(0.9)

    async def test_empty_corpus_returns_none(self):
        backend = HashingBackend()
        router = make_router(CorpusSnapshot.empty(), backend=backend)

        assert await router.classify("anything") is None
        assert backend.calls == []

    async def test_no_neighbor_above_minimum_similarity(self):
        snapshot = await build_snapshot([("what bills are due", AgentRole.FINANCE)])
        router = make_router(snapshot, min_similarity=0.5)

        assert await router.classify("draw a cat wearing a spacesuit") is None

    async def test_embedding_failure_returns_none(self):
        snapshot = await build_snapshot([("lock the front door", AgentRole.HOME)])
        router = make_router(snapshot, backend=HashingBackend(fail=True))

        assert await router.classify("lock the front door") is None

    async def test_embedding_timeout_returns_none(self):
        snapshot = await build_snapshot([("lock the front door", AgentRole.HOME)])
        router = make_router(snapshot, backend=HashingBackend(delay=2.0))

        assert await router.classify("lock the front door") is None

    async def test_dimension_mismatch_returns_none(self):
        snapshot = CorpusSnapshot(1, [example(1, AgentRole.HOME)])
        router = make_router(snapshot)

        assert await router.classify("lock the front door") is None


class TestVote:

    def test_count_then_summed_similarity(self):
        router = make_router(CorpusSnapshot.empty())
        neighbors = [
            (example(1, AgentRole.HOME), 0.9),
            (example(2, AgentRole.FINANCE), 0.8),
            (example(3, AgentRole.FINANCE), 0.7),
            (example(4, AgentRole.HOME), 0.5),
        ]

        role, similarities = router._vote(neighbors)

        assert role is AgentRole.FINANCE
        assert similarities == [0.8, 0.7]

    def test_full_tie_uses_role_order(self):
        router = make_router(CorpusSnapshot.empty())
        neighbors = [
            (example(1, AgentRole.FINANCE), 0.5),
            (example(2, AgentRole.HOME), 0.375),
            (example(3, AgentRole.FINANCE), 0.25),
            (example(4, AgentRole.HOME), 0.375),
        ]

        role, _ = router._vote(neighbors)

        assert role is AgentRole.HOME
