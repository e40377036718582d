"""Per-novel incremental ingestion."""
import enum
import logging
import re
from typing import Optional

from crawler.fetcher import FetchError
from crawler.pacing import Pacer
from crawler.registry import ExtractorRegistry
from progress_store import PersistenceError, ProgressStore
from schemas import Missing, NovelMetadata
from stats import NovelOutcome, RunStatistics

logger = logging.getLogger(__name__)

# First number in the text, plus any sign, fraction or K/M suffix attached to it
CHAPTER_COUNT_PATTERN = re.compile(r'(-?)(\d[\d,]*)(\.\d*)?([kKmM])?')


class IngestionState(str, enum.Enum):
    """Ingestion states for a single novel."""
    FETCHING_METADATA = "fetching_metadata"
    RESOLVING_TARGET = "resolving_target"
    INGESTING = "ingesting"
    DONE = "done"
    SKIPPED = "skipped"


def parse_chapter_count(raw: Optional[str]) -> Optional[int]:
    """
    Parse a declared chapter count such as "2,303" or "2303 Chapters".

    Returns:
        The positive integer count, or None if there is none or it is
        negative, fractional or abbreviated ("2.3K")
    """
    if not raw:
        return None

    match = CHAPTER_COUNT_PATTERN.search(raw)
    if not match:
        return None

    sign, digits, fraction, suffix = match.groups()
    if sign or fraction or suffix:
        return None

    count = int(digits.replace(',', ''))
    return count if count > 0 else None


class NovelIngestor:
    """
    Bring one novel's persisted chapters up to its declared chapter count.

    Progress is read from the store, never kept in memory between runs:
    chapters run from (highest persisted chapter + 1) up to the declared
    count, strictly in order, each saved as soon as it is scraped. Every
    failure is counted and logged; none is retried.
    """

    def __init__(
        self,
        fetcher,
        registry: ExtractorRegistry,
        store: ProgressStore,
        stats: RunStatistics,
        persist_pacer: Optional[Pacer] = None,
        progress_log_every: int = 50,
    ):
        self.fetcher = fetcher
        self.registry = registry
        self.store = store
        self.stats = stats
        self.persist_pacer = persist_pacer or Pacer(0, name="persist")
        self.progress_log_every = progress_log_every

    def ingest(self, novel_url: str) -> NovelOutcome:
        """
        Run the ingestion state machine for one novel.

        Args:
            novel_url: The novel's landing page URL (its identity)

        Returns:
            The outcome, also appended to the run statistics
        """
        outcome = NovelOutcome(novel_url=novel_url, state=IngestionState.FETCHING_METADATA.value)
        logger.info(f"=== Ingesting novel {novel_url} ===")

        extractor = self.registry.get_extractor_for_url(novel_url)
        if extractor is None:
            return self._skip(outcome, "unsupported_source")
        logger.debug(f"Using {extractor.name} extractor for {novel_url}")

        # FETCHING_METADATA
        try:
            content = self.fetcher.fetch(novel_url)
        except FetchError as e:
            logger.error(f"Metadata fetch failed for {novel_url}: {e.reason}")
            return self._skip(outcome, "metadata_fetch_failed")

        metadata = extractor.parse_novel(content, novel_url)
        if isinstance(metadata, Missing):
            logger.error(f"Could not scrape essential novel details for {novel_url}: {metadata}")
            return self._skip(outcome, f"missing_{metadata.field}")

        outcome.title = metadata.title

        # RESOLVING_TARGET
        outcome.state = IngestionState.RESOLVING_TARGET.value
        target = parse_chapter_count(metadata.total_chapters)
        if target is None:
            logger.error(
                f"Could not parse valid chapter count ({metadata.total_chapters!r}) "
                f"for '{metadata.title}'"
            )
            return self._skip(outcome, "invalid_chapter_count")
        outcome.target_chapters = target

        # Metadata is saved before any chapter so it survives a failed loop
        try:
            novel_id = self.store.upsert_novel(novel_url, metadata)
        except PersistenceError as e:
            self.stats.db_errors += 1
            logger.error(str(e))
            return self._skip(outcome, "novel_persistence_failed")
        self.stats.novel_db_updates += 1

        # INGESTING
        outcome.state = IngestionState.INGESTING.value
        highest = self.store.get_highest_chapter_number(novel_id)
        resume_from = (highest or 0) + 1
        outcome.resume_from = resume_from

        if resume_from > target:
            logger.info(
                f"'{metadata.title}' is up to date ({highest}/{target} chapters), nothing to scrape"
            )
        else:
            logger.info(
                f"--- Processing chapters {resume_from} to {target} of '{metadata.title}' ---"
            )
            for number in range(resume_from, target + 1):
                self._ingest_chapter(extractor, metadata, novel_id, number, target, outcome)

        outcome.state = IngestionState.DONE.value
        self.stats.novels_processed += 1
        self.stats.outcomes.append(outcome)

        logger.info(
            f"Finished '{metadata.title}': attempted={outcome.chapters_attempted}, "
            f"ok={outcome.chapters_succeeded}, empty={outcome.chapters_empty}, "
            f"errors={outcome.chapters_errored}, saved={outcome.chapters_persisted}"
        )
        return outcome

    def _ingest_chapter(self, extractor, metadata: NovelMetadata, novel_id: int,
                        number: int, target: int, outcome: NovelOutcome):
        url = extractor.chapter_url(metadata, number)
        self.stats.chapters_attempted += 1
        outcome.chapters_attempted += 1
        logger.info(f"Processing Chapter {number}/{target}: {url}")

        try:
            content = self.fetcher.fetch(url)
        except FetchError as e:
            self.stats.chapters_errored += 1
            outcome.chapters_errored += 1
            logger.error(f"Error scraping chapter {number} ({url}): {e.reason}")
            return

        chapter = extractor.parse_chapter(content, url)
        if isinstance(chapter, Missing):
            self.stats.chapters_empty += 1
            outcome.chapters_empty += 1
            logger.warning(f"Chapter {number} scraped but content was empty or not found. Skipping save.")
            return

        self.stats.chapters_succeeded += 1
        outcome.chapters_succeeded += 1

        self._persist_chapter(novel_id, number, chapter, outcome)

        if number % self.progress_log_every == 0:
            logger.info(f"--- Progress: processed up to chapter {number} ---")

    def _persist_chapter(self, novel_id, number, chapter, outcome: NovelOutcome):
        self.persist_pacer.wait()

        try:
            chapter_id = self.store.upsert_chapter(novel_id, number, chapter)
        except PersistenceError as e:
            # Without a durable chapter there is nothing to reference
            self.stats.db_errors += 1
            logger.error(str(e))
            return

        self.stats.chapter_db_updates += 1
        outcome.chapters_persisted += 1
        logger.info(f"  Saved/Updated Chapter {number} (ID: {chapter_id})")

        try:
            if self.store.add_chapter_reference(novel_id, chapter_id):
                self.stats.chapter_refs_added += 1
            else:
                logger.debug(f"  Chapter {number} already referenced by novel {novel_id}")
        except PersistenceError as e:
            self.stats.db_errors += 1
            logger.error(str(e))

    def _skip(self, outcome: NovelOutcome, reason: str) -> NovelOutcome:
        logger.warning(f"Skipping novel {outcome.novel_url}: {reason}")
        outcome.state = IngestionState.SKIPPED.value
        outcome.reason = reason
        self.stats.novels_skipped += 1
        self.stats.outcomes.append(outcome)
        return outcome
