"""Sequential batch ingestion over the configured novel list."""
import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError

from config import FatalStartupError, Settings
from crawler.fetcher import Fetcher
from crawler.pacing import Pacer
from crawler.registry import ExtractorRegistry
from database import check_connection, create_db_engine, create_session_factory, init_db
from ingestion import NovelIngestor
from progress_store import ProgressStore
from stats import RunStatistics, StatsReporter

logger = logging.getLogger(__name__)


class BatchRunner:
    """
    Run ingestion for each target novel, one after another.

    A novel that blows up with an unexpected exception is logged and counted
    as failed; the batch always continues and always ends with a report.
    """

    def __init__(
        self,
        settings: Settings,
        fetcher,
        store: ProgressStore,
        registry: Optional[ExtractorRegistry] = None,
        reporter: Optional[StatsReporter] = None,
        novel_pacer: Optional[Pacer] = None,
        persist_pacer: Optional[Pacer] = None,
    ):
        self.settings = settings
        self.fetcher = fetcher
        self.store = store
        self.registry = registry or ExtractorRegistry()
        self.reporter = reporter or StatsReporter(settings.report_dir)
        self.novel_pacer = novel_pacer or Pacer.from_milliseconds(
            settings.novel_delay_ms, name="novel"
        )
        self.persist_pacer = persist_pacer or Pacer.from_milliseconds(
            settings.db_operation_delay_ms, name="persist"
        )

    def run(self, targets: Optional[Iterable[str]] = None) -> RunStatistics:
        """
        Ingest every target in order.

        Args:
            targets: Novel URLs; defaults to the configured list

        Returns:
            The finished run statistics
        """
        targets = list(self.settings.targets if targets is None else targets)
        stats = RunStatistics()
        ingestor = NovelIngestor(
            fetcher=self.fetcher,
            registry=self.registry,
            store=self.store,
            stats=stats,
            persist_pacer=self.persist_pacer,
            progress_log_every=self.settings.progress_log_every,
        )

        logger.info(f"--- Starting Scraper Run at {stats.start_time.isoformat()} ({len(targets)} novels) ---")

        for index, novel_url in enumerate(targets):
            if index > 0:
                self.novel_pacer.wait()

            try:
                ingestor.ingest(novel_url)
            except Exception:
                stats.novels_failed += 1
                logger.exception(f"Unexpected error while ingesting {novel_url}")

        stats.finish()
        self.reporter.report(stats)
        return stats


@dataclass
class StartupResult:
    """Outcome of wiring up a runner; exactly one of the fields is set."""
    runner: Optional[BatchRunner] = None
    error: Optional[FatalStartupError] = None

    @property
    def ok(self) -> bool:
        return self.runner is not None


def build_runner(settings: Settings) -> StartupResult:
    """
    Connect to the store and assemble a BatchRunner from settings.

    Nothing is fetched here. A missing connection string or an unreachable
    database comes back as an error result instead of an exception.
    """
    if not settings.database_url:
        return StartupResult(error=FatalStartupError("DATABASE_URL is not configured"))

    try:
        engine = create_db_engine(settings.database_url, echo=settings.environment == "development")
        check_connection(engine)
        init_db(engine)
    except (SQLAlchemyError, ImportError) as e:
        return StartupResult(error=FatalStartupError(f"Cannot reach the database: {e}"))

    logger.info("Database connected successfully.")

    runner = BatchRunner(
        settings=settings,
        fetcher=Fetcher.from_settings(settings),
        store=ProgressStore(create_session_factory(engine)),
    )
    return StartupResult(runner=runner)
