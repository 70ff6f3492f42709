"""Standalone generation worker: ``python -m lexdraft.workers``."""

import asyncio
import logging
import signal

from dotenv import load_dotenv

load_dotenv()

from ..config import settings  # noqa: E402
from ..runtime import build_runtime  # noqa: E402
from ..utils.logging import setup_logging  # noqa: E402

logger = logging.getLogger(__name__)


async def main() -> None:
    setup_logging(level=settings.LOG_LEVEL)
    runtime = build_runtime(settings, run_worker=True)

    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def shutdown_handler(signum):
        """Handle graceful shutdown."""
        logger.info(f"[worker] Received {signal.Signals(signum).name}, gracefully stopping...")
        stop_event.set()

    for signum in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(signum, shutdown_handler, signum)

    logger.info("[worker] Starting generation worker...")
    await runtime.start()
    try:
        await stop_event.wait()
    finally:
        await runtime.stop()
        logger.info("[worker] Worker shutdown complete")


if __name__ == "__main__":
    asyncio.run(main())
