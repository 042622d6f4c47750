"""
Auto Job Lifecycle Worker Runner
Run this as a separate process: python run_auto_job_worker.py
"""

import asyncio
import logging
import signal
import sys

from app.database import Base, engine
from app.main import build_auto_job_service

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)

logger = logging.getLogger(__name__)


async def run_auto_job_worker():
    Base.metadata.create_all(bind=engine, checkfirst=True)

    service = build_auto_job_service()
    shutdown = asyncio.Event()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, shutdown.set)
        except NotImplementedError:
            # Windows: fall back to KeyboardInterrupt
            pass

    service.start()
    try:
        await shutdown.wait()
    finally:
        logger.info("🛑 Shutdown requested, stopping auto job worker...")
        await service.stop()


if __name__ == "__main__":
    logger.info("🚀 Starting Auto Job Lifecycle Worker...")
    try:
        asyncio.run(run_auto_job_worker())
    except KeyboardInterrupt:
        logger.info("👋 Auto job worker stopped by user")
    except Exception as e:
        logger.error(f"❌ Auto job worker crashed: {e}")
        sys.exit(1)
