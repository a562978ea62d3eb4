"""
Database setup and initialization script.
Creates tables, seeds the starter example corpus, and optionally back-fills
its embeddings.
"""

import asyncio
import sys
from pathlib import Path

# Add project root to Python path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from agent_routing.corpus.example_corpus import CorpusChanges
from agent_routing.corpus.seed_examples import starter_example_rows
from agent_routing.service import build_service
from agent_routing.utils.logging_config import get_logger, setup_logging


async def setup_database(seed: bool, embed: bool):
    """Create tables, then seed and embed the starter corpus."""

    logger = get_logger(__name__)
    service = build_service(settings)

    try:
        print("[INFO] Initializing database...")
        await service.start(create_tables=True)
        print("[SUCCESS] Tables created")

        if seed:
            async def prepare(snapshot):
                summary = await service.store.get_corpus_summary(snapshot.version)
                if summary["total_examples"]:
                    return None
                return CorpusChanges(new_examples=starter_example_rows())

            version = await service.corpus.publish(prepare, note="starter examples")
            if version is None:
                print("[INFO] Corpus already has examples; starter set not loaded")
            else:
                print(f"[SUCCESS] Loaded {len(starter_example_rows())} starter examples (corpus v{version})")

        if embed:
            print("[INFO] Back-filling example embeddings (first run downloads the model)...")
            count = await service.feedback_loop.seed_example_embeddings()
            print(f"[SUCCESS] Embedded {count} examples (corpus v{service.corpus.current().version})")

        health_info = await service.db_manager.health_check()
        if health_info["database"]["status"] == "healthy":
            print("[INFO] Database connection is healthy")
        else:
            print(f"[WARNING] Database health check failed: {health_info}")

    except Exception as e:
        logger.error(f"Database setup failed: {str(e)}")
        print(f"[ERROR] Database setup failed: {e}")
        sys.exit(1)

    finally:
        await service.close()


def main():
    """Main entry point."""

    setup_logging()

    print("""
    =============================================================================
                           Database Setup Script
                      Agent Routing Database Initialization
    =============================================================================
    """)

    seed = input("\n[PROMPT] Load the starter example corpus? (Y/n): ").lower() not in ['n', 'no']
    embed = seed and input("[PROMPT] Back-fill embeddings now? (y/N): ").lower() in ['y', 'yes']

    asyncio.run(setup_database(seed=seed, embed=embed))

    print("\n[SUCCESS] Database setup completed successfully!")
    print("   You can now start the server with: python scripts/run_server.py")


if __name__ == "__main__":
    main()
