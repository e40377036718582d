"""Run statistics and the end-of-run report."""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


@dataclass
class NovelOutcome:
    """Per-novel summary produced by one ingestion attempt."""
    novel_url: str
    state: str
    reason: Optional[str] = None
    title: Optional[str] = None
    target_chapters: Optional[int] = None
    resume_from: Optional[int] = None
    chapters_attempted: int = 0
    chapters_succeeded: int = 0
    chapters_empty: int = 0
    chapters_errored: int = 0
    chapters_persisted: int = 0


@dataclass
class RunStatistics:
    """Counters for a single batch run."""
    novels_processed: int = 0
    novels_skipped: int = 0
    novels_failed: int = 0
    chapters_attempted: int = 0
    chapters_succeeded: int = 0
    chapters_empty: int = 0
    chapters_errored: int = 0
    novel_db_updates: int = 0
    chapter_db_updates: int = 0
    chapter_refs_added: int = 0
    db_errors: int = 0
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    end_time: Optional[datetime] = None
    outcomes: List[NovelOutcome] = field(default_factory=list)

    def finish(self, end_time: Optional[datetime] = None):
        self.end_time = end_time or datetime.now(timezone.utc)

    @property
    def duration_seconds(self) -> float:
        end = self.end_time or datetime.now(timezone.utc)
        return (end - self.start_time).total_seconds()


class StatsReporter:
    """
    Render RunStatistics at the end of a run.

    The summary always goes to the log; when ``report_dir`` is set it is
    also written to ``scrape-report-<UTC timestamp>.txt``.
    """

    def __init__(self, report_dir: Optional[str] = None):
        self.report_dir = Path(report_dir) if report_dir else None

    def render(self, stats: RunStatistics) -> str:
        end = stats.end_time.isoformat() if stats.end_time else "-"
        lines = [
            "--- Scraping Statistics ---",
            f"Start Time:          {stats.start_time.isoformat()}",
            f"End Time:            {end}",
            f"Duration:            {stats.duration_seconds:.2f} seconds",
            f"Novels Processed:    {stats.novels_processed}",
            f"Novels Skipped:      {stats.novels_skipped}",
            f"Novels Failed:       {stats.novels_failed}",
            f"Chapters Attempted:  {stats.chapters_attempted}",
            f"Chapters Scraped OK: {stats.chapters_succeeded}",
            f"Chapters Empty/Miss: {stats.chapters_empty}",
            f"Chapter Scrape Err:  {stats.chapters_errored}",
            f"Novel DB Updates:    {stats.novel_db_updates}",
            f"Chapter DB Updates:  {stats.chapter_db_updates}",
            f"Chapter Refs Added:  {stats.chapter_refs_added}",
            f"Database Errors:     {stats.db_errors}",
        ]

        if stats.outcomes:
            lines.append("--- Novels ---")
            for outcome in stats.outcomes:
                line = (
                    f"[{outcome.state}] {outcome.title or outcome.novel_url}: "
                    f"attempted={outcome.chapters_attempted} ok={outcome.chapters_succeeded} "
                    f"empty={outcome.chapters_empty} errors={outcome.chapters_errored} "
                    f"saved={outcome.chapters_persisted}"
                )
                if outcome.reason:
                    line += f" ({outcome.reason})"
                lines.append(line)

        lines.append("--------------------------")
        return "\n".join(lines)

    def report(self, stats: RunStatistics) -> str:
        """Finish the statistics if needed, log the summary and return it."""
        if stats.end_time is None:
            stats.finish()

        text = self.render(stats)
        for line in text.splitlines():
            logger.info(line)

        if self.report_dir is not None:
            self.write_artifact(stats, text)

        return text

    def write_artifact(self, stats: RunStatistics, text: str) -> Optional[Path]:
        timestamp = stats.start_time.strftime("%Y%m%d-%H%M%S")
        path = self.report_dir / f"scrape-report-{timestamp}.txt"
        try:
            self.report_dir.mkdir(parents=True, exist_ok=True)
            # Runs started in the same second get a numbered suffix
            suffix = 1
            while path.exists():
                path = self.report_dir / f"scrape-report-{timestamp}-{suffix}.txt"
                suffix += 1
            path.write_text(text + "\n", encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to write report to {path}: {e}")
            return None

        logger.info(f"Report written to {path}")
        return path
