"""
Embedding generator adapter.

EmbeddingClient puts a single ``embed(text)`` call in front of whatever backend
produces vectors, enforces a timeout and the configured dimension, and maps
every failure to UpstreamError/UpstreamTimeout.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from collections import OrderedDict
from typing import Callable, List, Optional, Tuple

from agent_routing.exceptions import UpstreamError, UpstreamTimeout

logger = logging.getLogger(__name__)


class EmbeddingBackend(ABC):
    """Anything that turns text into a fixed-length float vector."""

    @abstractmethod
    async def encode(self, text: str) -> List[float]:
        pass


class SentenceTransformerBackend(EmbeddingBackend):
    """Local sentence-transformers model, loaded on first use"""

    def __init__(self, model_name: str):
        self.model_name = model_name
        self.embedding_model = None
        self._load_lock = asyncio.Lock()

    async def initialize_embedding_model(self):
        """Load the model once, off the event loop."""
        async with self._load_lock:
            if self.embedding_model is not None:
                return
            try:
                from sentence_transformers import SentenceTransformer
                loop = asyncio.get_running_loop()
                self.embedding_model = await loop.run_in_executor(
                    None, SentenceTransformer, self.model_name
                )
                logger.info(f"Embedding model loaded: {self.model_name}")
            except Exception as e:
                logger.error(f"Failed to load embedding model: {e}")
                raise

    async def encode(self, text: str) -> List[float]:
        """Generate embeddings using sentence transformers"""
        await self.initialize_embedding_model()

        # Run in thread pool to avoid blocking
        loop = asyncio.get_running_loop()
        embedding = await loop.run_in_executor(
            None,
            self.embedding_model.encode,
            text
        )
        return embedding.tolist()


class EmbeddingCache:
    """
    Bounded text -> vector cache owned by one EmbeddingClient.
    Each entry carries its own expiry timestamp.
    """

    def __init__(self, ttl_seconds: float = 3600, max_entries: int = 1024,
                 clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: "OrderedDict[str, Tuple[List[float], float]]" = OrderedDict()

    def get(self, text: str) -> Optional[List[float]]:
        entry = self._entries.get(text)
        if entry is None:
            return None
        vector, expires_at = entry
        if self._clock() >= expires_at:
            del self._entries[text]
            return None
        self._entries.move_to_end(text)
        return vector

    def put(self, text: str, vector: List[float]) -> None:
        if self.max_entries <= 0:
            return
        self._entries[text] = (vector, self._clock() + self.ttl_seconds)
        self._entries.move_to_end(text)
        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)


class EmbeddingClient:
    """Timeout-bounded, dimension-checked embedding calls."""

    service_name = "embedding"

    def __init__(
        self,
        backend: EmbeddingBackend,
        dimension: int,
        timeout_seconds: float = 5.0,
        cache: Optional[EmbeddingCache] = None
    ):
        self.backend = backend
        self.dimension = dimension
        self.timeout_seconds = timeout_seconds
        self.cache = cache

    async def embed(self, text: str, timeout: Optional[float] = None) -> List[float]:
        """
        Embed ``text``. ``timeout`` (usually the remaining route deadline) is
        capped at the client's own timeout.

        Raises:
            UpstreamTimeout: the backend did not answer in time
            UpstreamError: the backend failed or returned the wrong dimension
        """
        if self.cache is not None:
            cached = self.cache.get(text)
            if cached is not None:
                return cached

        limit = self.timeout_seconds if timeout is None else min(timeout, self.timeout_seconds)
        if limit <= 0:
            raise UpstreamTimeout(self.service_name, 0.0)

        try:
            vector = await asyncio.wait_for(self.backend.encode(text), timeout=limit)
        except asyncio.TimeoutError:
            raise UpstreamTimeout(self.service_name, limit)
        except UpstreamError:
            raise
        except Exception as e:
            raise UpstreamError(self.service_name, str(e)) from e

        vector = [float(value) for value in vector]
        if len(vector) != self.dimension:
            raise UpstreamError(
                self.service_name,
                f"expected {self.dimension} dimensions, got {len(vector)}"
            )

        if self.cache is not None:
            self.cache.put(text, vector)
        return vector
