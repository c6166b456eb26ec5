"""
main.py — Single entry point.

Runs the recognition API (aiohttp web server) in one asyncio event loop
until SIGINT / SIGTERM.
"""
import asyncio
import logging
import signal
import sys
from pathlib import Path

import config

# Log file lives under DATA_DIR so a single Docker volume mount captures it.
_data_dir = Path(config.DATA_DIR)
_data_dir.mkdir(parents=True, exist_ok=True)

logging.basicConfig(
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    level=logging.INFO,
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler(str(_data_dir / "recognizer.log"), encoding="utf-8"),
    ],
)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)

logger = logging.getLogger(__name__)


async def run() -> None:
    if not config.is_vision_configured():
        logger.warning("GOOGLE_API_KEY not configured — /api/ai/recognize will return 503.")
    if not config.is_search_configured():
        logger.warning("Custom Search not configured — price research will return 503.")

    from api_server import start_server
    web_runner = await start_server()

    stop_event = asyncio.Event()

    def _stop(*_):
        logger.info("Shutdown signal received.")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _stop)
        except (NotImplementedError, RuntimeError):
            # Windows doesn't support add_signal_handler for all signals
            pass

    logger.info("✅ Recognition service is running. Press Ctrl+C to stop.")
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down…")
        await web_runner.cleanup()

    logger.info("Goodbye.")


def main() -> None:
    try:
        asyncio.run(run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
