import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import redis.asyncio as redis
from sqlalchemy import select, text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from agent_routing.database.schemas import Base, CorpusPointer, CorpusVersionRecord

logger = logging.getLogger(__name__)

POINTER_ROW_ID = 1


class DatabaseManager:
    """Manages the SQL engine and the optional Redis client"""

    def __init__(self, database_url: str, echo: bool = False, redis_url: Optional[str] = None):
        self.database_url = database_url
        self.echo = echo
        self.redis_url = redis_url
        self._engine = None
        self._session_factory = None
        self._redis_client = None

    async def initialize(self):
        """Initialize all database connections"""
        await self._init_sql()
        if self.redis_url:
            await self._init_redis()
        logger.info("All database connections initialized successfully")

    async def _init_sql(self):
        """Initialize the SQL engine and session factory"""
        try:
            if self.database_url.startswith("sqlite"):
                # In-memory SQLite needs one shared connection
                self._engine = create_async_engine(
                    self.database_url,
                    poolclass=StaticPool,
                    connect_args={"check_same_thread": False},
                    echo=self.echo
                )
            else:
                self._engine = create_async_engine(
                    self.database_url,
                    poolclass=NullPool,
                    echo=self.echo
                )

            self._session_factory = async_sessionmaker(
                bind=self._engine,
                class_=AsyncSession,
                expire_on_commit=False
            )

            async with self._engine.begin() as conn:
                await conn.execute(text("SELECT 1"))

            logger.info("SQL connection established")

        except Exception as e:
            logger.error(f"Failed to initialize SQL database: {e}")
            raise

    async def _init_redis(self):
        """Initialize Redis connection"""
        try:
            self._redis_client = redis.from_url(
                self.redis_url,
                decode_responses=True,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30
            )

            await self._redis_client.ping()
            logger.info("Redis connection established")

        except Exception as e:
            logger.error(f"Failed to initialize Redis: {e}")
            raise

    async def create_tables(self):
        """Create all tables and the corpus pointer row"""
        if not self._engine:
            await self._init_sql()

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

        async with self.get_session() as session:
            pointer = await session.get(CorpusPointer, POINTER_ROW_ID)
            if pointer is None:
                session.add(CorpusVersionRecord(version=0, example_count=0, note="empty corpus"))
                session.add(CorpusPointer(id=POINTER_ROW_ID, current_version=0))
                await session.commit()
                logger.info("Initialized corpus pointer at version 0")

    @asynccontextmanager
    async def get_session(self) -> AsyncGenerator[AsyncSession, None]:
        """Get a database session"""
        if not self._session_factory:
            await self._init_sql()

        async with self._session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    async def get_redis_client(self) -> Optional[redis.Redis]:
        """Get Redis client, or None when Redis is not configured"""
        if not self.redis_url:
            return None
        if not self._redis_client:
            await self._init_redis()
        return self._redis_client

    async def close(self):
        """Close all database connections"""
        if self._engine:
            await self._engine.dispose()

        if self._redis_client:
            await self._redis_client.aclose()

        logger.info("All database connections closed")

    async def health_check(self) -> dict:
        """Check health of all database connections"""
        health = {
            "database": {"status": "down", "latency_ms": None}
        }

        try:
            start = time.time()
            async with self.get_session() as session:
                await session.execute(select(CorpusPointer.current_version))

            health["database"]["status"] = "healthy"
            health["database"]["latency_ms"] = round((time.time() - start) * 1000, 2)

        except Exception as e:
            logger.error(f"Database health check failed: {e}")
            health["database"]["error"] = str(e)

        if self.redis_url:
            health["redis"] = {"status": "down", "latency_ms": None}
            try:
                start = time.time()
                redis_client = await self.get_redis_client()
                await redis_client.ping()

                health["redis"]["status"] = "healthy"
                health["redis"]["latency_ms"] = round((time.time() - start) * 1000, 2)

            except Exception as e:
                logger.error(f"Redis health check failed: {e}")
                health["redis"]["error"] = str(e)

        return health
