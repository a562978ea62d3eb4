import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST

from config.settings import Settings, settings as default_settings
from agent_routing.api.endpoints import admin, feedback, routing
from agent_routing.api.models import ComponentHealth, HealthResponse, HealthStatus
from agent_routing.exceptions import ValidationError
from agent_routing.service import RoutingService, build_service

logger = logging.getLogger(__name__)


def create_app(
    service: Optional[RoutingService] = None,
    config: Optional[Settings] = None,
    create_tables: bool = False
) -> FastAPI:
    """Build the FastAPI application around one RoutingService."""
    config = config or (service.settings if service else default_settings)
    service = service or build_service(config)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        logger.info(f"Starting {config.APP_NAME}...")
        app.state.started_at = time.time()

        try:
            await service.start(create_tables=create_tables)
        except Exception as e:
            logger.error(f"Startup failed: {e}")
            raise

        yield

        logger.info("Shutting down application...")
        await service.close()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=config.APP_NAME,
        version=config.APP_VERSION,
        description="Multi-tier agent routing, handoff validation, and routing feedback",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan
    )
    app.state.service = service
    app.state.started_at = time.time()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError):
        logger.info(f"Rejected request to {request.url.path}: {exc}")
        return JSONResponse(
            status_code=400,
            content={
                "error": {
                    "message": str(exc),
                    "type": "ValidationError",
                    "field": exc.field
                }
            }
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.error(f"Unhandled exception: {exc}", exc_info=True)
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "message": "Internal server error",
                    "type": type(exc).__name__,
                    "detail": str(exc) if config.DEBUG else None
                }
            }
        )

    app.include_router(routing.router, prefix=config.API_PREFIX, tags=["Routing"])
    app.include_router(feedback.router, prefix=config.API_PREFIX, tags=["Feedback"])
    app.include_router(admin.router, prefix=f"{config.API_PREFIX}/admin", tags=["Admin"])

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Database, Redis (when enabled), and corpus health"""
        now = datetime.now(timezone.utc)
        components = []

        db_health = await service.db_manager.health_check()

        database = db_health["database"]
        components.append(ComponentHealth(
            name="database",
            status=HealthStatus.HEALTHY if database["status"] == "healthy" else HealthStatus.CRITICAL,
            response_time=(database.get("latency_ms") or 0) / 1000,
            last_check=now,
            details={"latency_ms": database.get("latency_ms")},
            error=database.get("error")
        ))

        if "redis" in db_health:
            redis_health = db_health["redis"]
            components.append(ComponentHealth(
                name="redis",
                status=HealthStatus.HEALTHY if redis_health["status"] == "healthy" else HealthStatus.DEGRADED,
                response_time=(redis_health.get("latency_ms") or 0) / 1000,
                last_check=now,
                details={"latency_ms": redis_health.get("latency_ms")},
                error=redis_health.get("error")
            ))

        snapshot = service.corpus.current()
        components.append(ComponentHealth(
            name="example_corpus",
            status=HealthStatus.HEALTHY if not snapshot.is_empty else HealthStatus.DEGRADED,
            last_check=now,
            details={
                "version": snapshot.version,
                "examples": len(snapshot),
                "by_agent": snapshot.label_counts(),
                "classifier_enabled": service.engine.classifier_enabled
            }
        ))

        overall_status = HealthStatus.HEALTHY
        if any(c.status == HealthStatus.CRITICAL for c in components):
            overall_status = HealthStatus.CRITICAL
        elif any(c.status == HealthStatus.DEGRADED for c in components):
            overall_status = HealthStatus.DEGRADED

        return HealthResponse(
            status=overall_status,
            timestamp=now,
            version=config.APP_VERSION,
            uptime=time.time() - request.app.state.started_at,
            components=components
        )

    @app.get("/metrics", tags=["Health"])
    async def metrics():
        """Prometheus metrics"""
        if not config.ENABLE_METRICS:
            return JSONResponse(status_code=404, content={"error": {"message": "Metrics disabled"}})
        return PlainTextResponse(service.metrics.get_prometheus_metrics(), media_type=CONTENT_TYPE_LATEST)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "agent_routing.api.main:app",
        host=default_settings.API_HOST,
        port=default_settings.API_PORT,
        reload=default_settings.DEBUG,
        log_level=default_settings.LOG_LEVEL.lower()
    )
