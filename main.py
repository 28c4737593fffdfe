#!/usr/bin/env python3
"""
Main entry point for the Marketplace Matching Engine.
"""

import argparse
import sys

from src.logging_config import configure_logging


def run_api():
    """Start the FastAPI server."""
    import uvicorn
    from src.config import settings

    uvicorn.run(
        "src.api.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )


def run_worker():
    """Start Celery worker."""
    from src.modules.orchestration.celery_app import celery_app

    celery_app.worker_main([
        "worker",
        "--loglevel=INFO",
        "--concurrency=4",
        "-Q", "default,replacements",
    ])


def run_beat():
    """Start Celery beat scheduler."""
    from src.modules.orchestration.celery_app import celery_app

    celery_app.worker_main([
        "beat",
        "--loglevel=INFO",
    ])


def init_db():
    """Initialize database tables."""
    import asyncio
    from src.database.connection import init_database

    asyncio.run(init_database())
    print("Database initialized successfully")


def seed_providers():
    """Insert demo providers."""
    import importlib.util
    from pathlib import Path

    script_path = Path(__file__).parent / "scripts" / "seed_providers.py"
    spec = importlib.util.spec_from_file_location("seed_providers", script_path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    module.main()


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Marketplace Matching Engine",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Commands:
  api       Start the FastAPI server
  worker    Start Celery worker (replacement searches)
  beat      Start Celery beat scheduler
  init-db   Initialize database tables
  seed      Insert demo providers

Examples:
  python main.py api
  python main.py worker
  python main.py seed --count 500 --spread-km 30
        """,
    )

    parser.add_argument(
        "command",
        choices=["api", "worker", "beat", "init-db", "seed"],
        help="Command to run",
    )

    args, remaining = parser.parse_known_args()

    # Configure logging
    configure_logging()

    if args.command == "api":
        run_api()
    elif args.command == "worker":
        run_worker()
    elif args.command == "beat":
        run_beat()
    elif args.command == "init-db":
        init_db()
    elif args.command == "seed":
        # Pass remaining args to the seeding script
        sys.argv = ["seed_providers.py"] + remaining
        seed_providers()


if __name__ == "__main__":
    main()
