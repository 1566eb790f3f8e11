#!/usr/bin/env python3
"""
Celery worker script for the local marketplace.
Runs the worker with an embedded beat scheduler so the trial sweeps,
impression cleanup and queued emails are all processed by one process.
"""

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

if __name__ == "__main__":
    from core.config import settings
    from core.logging_config import setup_logging
    from core.celery import celery_app

    setup_logging(settings.LOG_LEVEL)

    celery_app.start([
        "worker",
        "--beat",
        f"--loglevel={settings.LOG_LEVEL.lower()}",
        "--concurrency=4",
        "--without-gossip",
        "--without-mingle",
    ])
