#!/usr/bin/env python
"""
Server startup script for the agent routing service.
"""

import sys
import logging
import socket
from pathlib import Path
from urllib.parse import urlparse

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

logger = logging.getLogger(__name__)


def check_requirements(settings) -> bool:
    """Check that the configured database (and Redis, when enabled) accept connections"""
    services = []

    parsed = urlparse(settings.DATABASE_URL)
    if parsed.hostname:
        services.append(("Database", parsed.hostname, parsed.port or 5432))
    if settings.REDIS_ENABLED:
        services.append(("Redis", settings.REDIS_HOST, settings.REDIS_PORT))

    all_available = True
    for service, host, port in services:
        sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        sock.settimeout(2)
        result = sock.connect_ex((host, port))
        sock.close()

        if result == 0:
            logger.info(f"{service} is available on {host}:{port}")
        else:
            logger.warning(f"{service} is not available on {host}:{port}")
            all_available = False

    return all_available


def main():
    """Main server startup function"""
    try:
        from config.settings import settings
        from agent_routing.utils.logging_config import setup_logging
        import uvicorn

        setup_logging(settings)

        logger.info("=" * 60)
        logger.info(f"Starting {settings.APP_NAME}")
        logger.info(f"Version: {settings.APP_VERSION}")
        logger.info("=" * 60)

        if not check_requirements(settings):
            logger.error("Some required services are not available!")
            return

        logger.info("Configuration:")
        logger.info(f"  Classifier: {'enabled' if settings.CLASSIFIER_ENABLED else 'disabled'} "
                    f"({settings.LLM_PROVIDER}/{settings.LLM_MODEL})")
        logger.info(f"  Vector tier: {'enabled' if settings.VECTOR_ENABLED else 'disabled'} "
                    f"({settings.EMBEDDING_MODEL})")
        logger.info(f"  Keyword threshold: {settings.KEYWORD_CONFIDENCE_THRESHOLD}")
        logger.info(f"  Handoff threshold: {settings.HANDOFF_CONFIDENCE_THRESHOLD}")

        logger.info(f"API Documentation: http://{settings.API_HOST}:{settings.API_PORT}/docs")
        logger.info(f"Health Check: http://{settings.API_HOST}:{settings.API_PORT}/health")

        uvicorn.run(
            "agent_routing.api.main:app",
            host=settings.API_HOST,
            port=settings.API_PORT,
            reload=settings.DEBUG,
            log_level=settings.LOG_LEVEL.lower(),
            log_config=None
        )

    except ImportError as e:
        logger.error(f"Import error: {e}")
        logger.error("Please ensure all dependencies are installed:")
        logger.error("  pip install -e .")
        sys.exit(1)

    except Exception as e:
        logger.error(f"Failed to start server: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
