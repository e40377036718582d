"""
Scraper entry point.

Runs one batch over the configured targets and exits. Takes no arguments;
targets and tuning constants come from the environment / .env file.

Usage:
    python main.py
"""
import logging
import sys

from batch_runner import build_runner
from config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def main():
    """Build the runner, run the batch, close the HTTP session."""
    startup = build_runner(settings)

    if not startup.ok:
        logger.error(f"Startup failed: {startup.error}")
        sys.exit(1)

    runner = startup.runner
    try:
        runner.run()
    finally:
        runner.fetcher.close()


if __name__ == "__main__":
    try:
        main()
    except KeyboardInterrupt:
        logger.info("Scraper interrupted; persisted progress will be resumed next run")
        sys.exit(130)
