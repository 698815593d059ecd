"""Worker service entry point."""

import asyncio
import logging
import signal
import sys

from dotenv import load_dotenv

load_dotenv()

from ..config import settings  # noqa: E402
from ..database import init_db  # noqa: E402
from ..utils.logging import setup_logging  # noqa: E402
from ..utils.redis import close_redis  # noqa: E402
from .celery_app import celery_app  # noqa: E402

logger = logging.getLogger(__name__)


def close_redis_for_shutdown() -> None:
    """Close Redis on the loop the signal interrupted, or on a fresh one."""
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        asyncio.run(close_redis())
    else:
        loop.create_task(close_redis())


def shutdown_handler(signum, frame):  # noqa: ARG001
    """Handle graceful shutdown."""
    logger.info("Received shutdown signal, gracefully stopping...")
    celery_app.control.shutdown()
    try:
        close_redis_for_shutdown()
    except Exception as e:
        logger.error(f"Error closing Redis: {e}")
    logger.info("Worker shutdown complete")
    sys.exit(0)


def main():
    setup_logging("aiwrapper", settings.LOG_LEVEL)

    # Register signal handlers
    signal.signal(signal.SIGTERM, shutdown_handler)
    signal.signal(signal.SIGINT, shutdown_handler)

    if settings.DATABASE_CREATE_TABLES:
        # Runs before the pool forks; children must not inherit a loop
        asyncio.run(init_db())

    logger.info(f"Starting worker service on queue {settings.JOB_QUEUE_NAME}...")

    # Import registers the task with the app
    from . import tasks  # noqa: F401

    celery_app.worker_main([
        "worker",
        f"--loglevel={settings.LOG_LEVEL}",
        f"--concurrency={settings.JOB_WORKER_CONCURRENCY}",
        f"--queues={settings.JOB_QUEUE_NAME}",
    ])


if __name__ == "__main__":
    main()
