"""
Component wiring. Builds every routing component from a Settings object so
the API, scripts, and tests share one construction path.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from config.settings import Settings
from agent_routing.corpus.example_corpus import ExampleCorpus
from agent_routing.database.connection import DatabaseManager
from agent_routing.database.routing_store import RoutingStore
from agent_routing.exceptions import CorpusUnavailable
from agent_routing.feedback.feedback_loop import FeedbackLoop
from agent_routing.handoff.protocol import HandoffProtocol
from agent_routing.routing.classifier_oracle import ClassifierOracle
from agent_routing.routing.explicit_matcher import ExplicitMentionMatcher
from agent_routing.routing.keyword_scorer import KeywordScorer
from agent_routing.routing.route_engine import RoutingEngine
from agent_routing.routing.vector_router import VectorRouter
from agent_routing.utils.embedding_client import (
    EmbeddingBackend, EmbeddingCache, EmbeddingClient, SentenceTransformerBackend
)
from agent_routing.utils.llm_service import BaseLLMProvider, create_llm_provider
from agent_routing.utils.monitoring import RoutingMetricsCollector

logger = logging.getLogger(__name__)


@dataclass
class RoutingService:
    settings: Settings
    db_manager: DatabaseManager
    store: RoutingStore
    metrics: RoutingMetricsCollector
    embedding_client: EmbeddingClient
    corpus: ExampleCorpus
    engine: RoutingEngine
    handoff_protocol: HandoffProtocol
    feedback_loop: FeedbackLoop

    async def start(self, create_tables: bool = False):
        """Open connections and load the current corpus version."""
        await self.db_manager.initialize()
        if create_tables:
            await self.db_manager.create_tables()
        self.feedback_loop.redis_client = await self.db_manager.get_redis_client()

        try:
            snapshot = await self.corpus.refresh()
            logger.info(f"Routing service ready (corpus v{snapshot.version}, {len(snapshot)} examples)")
        except CorpusUnavailable as e:
            # Vector tier stays silent until a later refresh succeeds
            logger.warning(f"Starting without example corpus: {e}")

    async def close(self):
        await self.db_manager.close()


def build_service(
    config: Settings,
    db_manager: Optional[DatabaseManager] = None,
    embedding_backend: Optional[EmbeddingBackend] = None,
    llm_provider: Optional[BaseLLMProvider] = None
) -> RoutingService:
    """Construct the full component graph from settings."""
    metrics = RoutingMetricsCollector(
        app_version=config.APP_VERSION,
        environment='development' if config.DEBUG else 'production'
    )

    db_manager = db_manager or DatabaseManager(
        database_url=config.async_database_url,
        echo=config.DB_ECHO,
        redis_url=config.redis_url if config.REDIS_ENABLED else None
    )
    store = RoutingStore(db_manager)

    embedding_client = EmbeddingClient(
        backend=embedding_backend or SentenceTransformerBackend(config.EMBEDDING_MODEL),
        dimension=config.EMBEDDING_DIM,
        timeout_seconds=config.EMBEDDING_TIMEOUT_SECONDS,
        cache=EmbeddingCache(
            ttl_seconds=config.EMBEDDING_CACHE_TTL,
            max_entries=config.EMBEDDING_CACHE_SIZE
        )
    )

    corpus = ExampleCorpus(
        store=store,
        dimension=config.EMBEDDING_DIM,
        publish_retries=config.FEEDBACK_PUBLISH_RETRIES,
        metrics=metrics,
        refresh_interval=config.CORPUS_REFRESH_SECONDS
    )

    vector_router = None
    if config.VECTOR_ENABLED:
        vector_router = VectorRouter(
            embedding_client=embedding_client,
            corpus=corpus,
            k=config.VECTOR_K,
            min_similarity=config.VECTOR_MIN_SIMILARITY,
            max_confidence=config.VECTOR_MAX_CONFIDENCE,
            metrics=metrics
        )

    oracle = None
    if config.CLASSIFIER_ENABLED:
        provider = llm_provider or create_llm_provider(config)
        if provider is not None:
            oracle = ClassifierOracle(
                provider=provider,
                timeout_seconds=config.CLASSIFIER_TIMEOUT_SECONDS,
                max_retries=config.CLASSIFIER_MAX_RETRIES,
                fallback_confidence=config.FALLBACK_CONFIDENCE,
                metrics=metrics
            )

    engine = RoutingEngine(
        explicit_matcher=ExplicitMentionMatcher(confidence=config.EXPLICIT_CONFIDENCE),
        keyword_scorer=KeywordScorer(
            phrase_weight=config.KEYWORD_PHRASE_WEIGHT,
            word_weight=config.KEYWORD_WORD_WEIGHT,
            min_score=config.KEYWORD_MIN_SCORE,
            base_confidence=config.KEYWORD_BASE_CONFIDENCE,
            score_step=config.KEYWORD_SCORE_STEP,
            max_confidence=config.KEYWORD_MAX_CONFIDENCE
        ),
        vector_router=vector_router,
        oracle=oracle,
        keyword_threshold=config.KEYWORD_CONFIDENCE_THRESHOLD,
        vector_threshold=config.VECTOR_CONFIDENCE_THRESHOLD,
        agreement_boost=config.AGREEMENT_BOOST,
        max_boosted_confidence=config.MAX_BOOSTED_CONFIDENCE,
        fallback_confidence=config.FALLBACK_CONFIDENCE,
        route_timeout_seconds=config.ROUTE_TIMEOUT_SECONDS,
        metrics=metrics
    )

    handoff_protocol = HandoffProtocol(
        engine=engine,
        store=store,
        handoff_threshold=config.HANDOFF_CONFIDENCE_THRESHOLD,
        metrics=metrics
    )

    feedback_loop = FeedbackLoop(
        store=store,
        corpus=corpus,
        embedding_client=embedding_client,
        lock_name=config.FEEDBACK_LOCK_NAME,
        lock_timeout=config.FEEDBACK_LOCK_TIMEOUT_SECONDS,
        stats_window_days=config.STATS_WINDOW_DAYS,
        metrics=metrics
    )

    logger.info(
        f"Built routing service (vector={'on' if vector_router else 'off'}, "
        f"classifier={'on' if oracle else 'off'})"
    )

    return RoutingService(
        settings=config,
        db_manager=db_manager,
        store=store,
        metrics=metrics,
        embedding_client=embedding_client,
        corpus=corpus,
        engine=engine,
        handoff_protocol=handoff_protocol,
        feedback_loop=feedback_loop
    )
