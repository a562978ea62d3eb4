"""
Shared fixtures: in-memory SQLite store, deterministic embedding backend,
and a scripted LLM provider standing in for the classifier service.
"""

import asyncio
import re
import zlib
from typing import List, Optional, Sequence, Union

import pytest

from config.settings import Settings
from agent_routing.corpus.example_corpus import CorpusSnapshot, ExampleCorpus, RoutingExample
from agent_routing.database.connection import DatabaseManager
from agent_routing.database.routing_store import RoutingStore
from agent_routing.utils.embedding_client import EmbeddingBackend, EmbeddingClient
from agent_routing.utils.llm_service import BaseLLMProvider

EMBEDDING_DIM = 256
ADMIN_TOKEN = "test-admin-token"
SQLITE_URL = "sqlite+aiosqlite://"

_WORD = re.compile(r"[a-z0-9]+")


class HashingBackend(EmbeddingBackend):
    """Bag-of-words vectors: texts sharing words get high cosine similarity."""

    def __init__(self, dimension: int = EMBEDDING_DIM, fail: bool = False, delay: float = 0.0):
        self.dimension = dimension
        self.fail = fail
        self.delay = delay
        self.calls: List[str] = []

    async def encode(self, text: str) -> List[float]:
        self.calls.append(text)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("embedding backend unavailable")
        vector = [0.0] * self.dimension
        for word in _WORD.findall(text.lower()):
            vector[zlib.crc32(word.encode()) % self.dimension] += 1.0
        return vector


class ScriptedProvider(BaseLLMProvider):
    """Returns queued responses in order; exceptions in the queue are raised."""

    name = "scripted"

    def __init__(self, responses: Sequence[Union[str, Exception]] = (), delay: float = 0.0):
        self.responses = list(responses)
        self.delay = delay
        self.calls: List[str] = []

    async def generate_response(self, prompt: str, system_prompt: Optional[str] = None, **kwargs) -> str:
        self.calls.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.responses:
            raise RuntimeError("no scripted response left")
        response = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(response, Exception):
            raise response
        return response


class StaticCorpus:
    """Serves one fixed snapshot to a VectorRouter."""

    def __init__(self, snapshot: CorpusSnapshot):
        self.snapshot = snapshot

    def current(self) -> CorpusSnapshot:
        return self.snapshot

    async def current_fresh(self) -> CorpusSnapshot:
        return self.snapshot


async def build_snapshot(labeled_texts, version: int = 1) -> CorpusSnapshot:
    """Snapshot of (text, role) pairs embedded with HashingBackend."""
    backend = HashingBackend()
    examples = []
    for index, (text, label) in enumerate(labeled_texts, start=1):
        examples.append(RoutingExample(
            id=index,
            text=text,
            embedding=tuple(await backend.encode(text)),
            label=label
        ))
    return CorpusSnapshot(version, examples)


def classifier_json(agent: str, confidence: float, rationale: str = "scripted") -> str:
    return f'{{"agent": "{agent}", "confidence": {confidence}, "rationale": "{rationale}"}}'


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        DATABASE_URL=SQLITE_URL,
        LOG_DIR=str(tmp_path / "logs"),
        REDIS_ENABLED=False,
        CLASSIFIER_ENABLED=False,
        ADMIN_TOKEN=ADMIN_TOKEN,
        CRON_SECRET="",
        EMBEDDING_DIM=EMBEDDING_DIM,
        VECTOR_K=3,
        ENABLE_METRICS=True
    )


@pytest.fixture
async def db_manager():
    manager = DatabaseManager(SQLITE_URL)
    await manager.initialize()
    await manager.create_tables()
    yield manager
    await manager.close()


@pytest.fixture
def store(db_manager) -> RoutingStore:
    return RoutingStore(db_manager)


@pytest.fixture
def embedding_backend() -> HashingBackend:
    return HashingBackend()


@pytest.fixture
def embedding_client(embedding_backend) -> EmbeddingClient:
    return EmbeddingClient(backend=embedding_backend, dimension=EMBEDDING_DIM, timeout_seconds=1.0)


@pytest.fixture
def corpus(store) -> ExampleCorpus:
    return ExampleCorpus(store=store, dimension=EMBEDDING_DIM, publish_retries=3)
