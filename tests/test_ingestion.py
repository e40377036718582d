import pytest

from crawler.pacing import Pacer
from crawler.registry import ExtractorRegistry
from ingestion import IngestionState, NovelIngestor, parse_chapter_count
from models import Chapter
from progress_store import PersistenceError, ProgressStore
from stats import RunStatistics
from fakes import FakeFetcher, chapter_page, chapter_url, novel_page, novel_url, site_pages


def make_ingestor(fetcher, store, stats, no_wait, registry=None):
    return NovelIngestor(
        fetcher=fetcher,
        registry=registry or ExtractorRegistry(),
        store=store,
        stats=stats,
        persist_pacer=no_wait,
    )


def chapter_rows(session_factory, novel_id):
    db = session_factory()
    try:
        rows = db.query(Chapter).filter_by(novel_id=novel_id).order_by(Chapter.chapter_number).all()
        return [(c.chapter_number, c.source_url, c.title, c.content) for c in rows]
    finally:
        db.close()


def seed_chapters(store, count):
    """Persist chapters 1..count as if a previous run had scraped them."""
    fetcher = FakeFetcher(site_pages(count))
    make_ingestor(fetcher, store, RunStatistics(), Pacer(0)).ingest(novel_url())
    return store.get_novel(novel_url()).id


@pytest.mark.parametrize("raw,expected", [
    ("3", 3),
    ("2,303", 2303),
    ("2303 Chapters", 2303),
    (" 80 ", 80),
    ("0", None),
    ("-5", None),
    ("2.3K", None),
    ("1.2k Chapters", None),
    ("12M", None),
    ("N/A", None),
    ("", None),
    (None, None),
])
def test_parse_chapter_count(raw, expected):
    assert parse_chapter_count(raw) == expected


def test_end_to_end_three_chapters(store, stats, no_wait):
    fetcher = FakeFetcher(site_pages(3))

    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    assert outcome.state == IngestionState.DONE.value
    novel = store.get_novel(novel_url())
    assert [n.novel_url for n in store.list_novels()] == [novel_url()]
    assert store.chapter_numbers(novel.id) == [1, 2, 3]

    chapter_ids = [store.get_chapter(novel.id, n).id for n in (1, 2, 3)]
    assert store.chapter_references(novel.id) == sorted(chapter_ids)

    assert stats.novels_processed == 1
    assert stats.chapters_attempted == 3
    assert stats.chapters_succeeded == 3
    assert stats.chapter_db_updates == 3
    assert stats.chapter_refs_added == 3
    assert stats.novel_db_updates == 1
    assert stats.db_errors == 0
    assert stats.outcomes == [outcome]


def test_chapters_are_fetched_in_increasing_order(store, stats, no_wait):
    fetcher = FakeFetcher(site_pages(5))

    make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    assert fetcher.calls == [novel_url()] + [chapter_url(n) for n in range(1, 6)]


def test_resume_fetches_only_remaining_chapters(store, stats, no_wait):
    novel_id = seed_chapters(store, 50)
    fetcher = FakeFetcher(site_pages(80))

    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    assert outcome.resume_from == 51
    assert fetcher.chapter_calls() == [chapter_url(n) for n in range(51, 81)]
    assert stats.chapters_attempted == 30
    assert store.get_highest_chapter_number(novel_id) == 80
    assert store.chapter_numbers(novel_id) == list(range(1, 81))


def test_second_run_is_idempotent(store, session_factory, no_wait):
    pages = site_pages(4)
    make_ingestor(FakeFetcher(pages), store, RunStatistics(), no_wait).ingest(novel_url())
    novel_id = store.get_novel(novel_url()).id
    before = chapter_rows(session_factory, novel_id)
    refs_before = store.chapter_references(novel_id)

    fetcher = FakeFetcher(pages)
    stats = RunStatistics()
    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    assert outcome.state == IngestionState.DONE.value
    assert fetcher.calls == [novel_url()]
    assert stats.chapters_attempted == 0
    assert stats.novels_processed == 1
    assert chapter_rows(session_factory, novel_id) == before
    assert store.chapter_references(novel_id) == refs_before
    assert len(store.list_novels()) == 1


def test_failed_chapter_does_not_stop_the_novel(store, stats, no_wait):
    fetcher = FakeFetcher(site_pages(50), failures={chapter_url(17)})

    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    novel_id = store.get_novel(novel_url()).id
    assert fetcher.chapter_calls() == [chapter_url(n) for n in range(1, 51)]
    assert stats.chapters_attempted == 50
    assert stats.chapters_succeeded == 49
    assert stats.chapters_errored == 1
    assert stats.chapters_empty == 0
    assert outcome.chapters_errored == 1
    assert 17 not in store.chapter_numbers(novel_id)
    assert store.get_highest_chapter_number(novel_id) == 50


def test_gap_from_skipped_chapter_is_not_revisited(store, stats, no_wait):
    pages = site_pages(5)
    make_ingestor(FakeFetcher(pages, failures={chapter_url(2)}), store, RunStatistics(), no_wait).ingest(novel_url())

    fetcher = FakeFetcher(pages)
    make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    novel_id = store.get_novel(novel_url()).id
    assert fetcher.chapter_calls() == []
    assert store.chapter_numbers(novel_id) == [1, 3, 4, 5]


def test_empty_chapter_is_counted_separately_and_not_saved(store, stats, no_wait):
    pages = site_pages(3)
    pages[chapter_url(2)] = chapter_page(2, body="   ")
    fetcher = FakeFetcher(pages)

    make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    novel_id = store.get_novel(novel_url()).id
    assert store.chapter_numbers(novel_id) == [1, 3]
    assert stats.chapters_empty == 1
    assert stats.chapters_errored == 0
    assert stats.chapters_succeeded == 2


def test_already_complete_novel_is_processed_without_chapter_fetches(store, stats, no_wait):
    seed_chapters(store, 3)
    fetcher = FakeFetcher(site_pages(3))

    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    assert outcome.state == IngestionState.DONE.value
    assert outcome.resume_from == 4
    assert stats.novels_processed == 1
    assert stats.chapters_attempted == 0
    assert fetcher.chapter_calls() == []


def test_metadata_fetch_failure_skips_novel(store, stats, no_wait):
    fetcher = FakeFetcher({}, failures={novel_url()})

    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    assert outcome.state == IngestionState.SKIPPED.value
    assert outcome.reason == "metadata_fetch_failed"
    assert stats.novels_skipped == 1
    assert stats.novels_processed == 0
    assert store.get_novel(novel_url()) is None


def test_missing_required_metadata_skips_novel(store, stats, no_wait):
    fetcher = FakeFetcher({novel_url(): novel_page(title=None)})

    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    assert outcome.reason == "missing_title"
    assert stats.novels_skipped == 1
    assert fetcher.calls == [novel_url()]


def test_unparseable_chapter_count_skips_before_saving(store, stats, no_wait):
    fetcher = FakeFetcher({novel_url(): novel_page(chapters="N/A")})

    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    assert outcome.state == IngestionState.SKIPPED.value
    assert outcome.reason == "invalid_chapter_count"
    assert store.get_novel(novel_url()) is None


def test_unsupported_source_is_skipped_without_fetching(store, stats, no_wait):
    fetcher = FakeFetcher({})

    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest("https://unknown-site.com/novel/1")

    assert outcome.reason == "unsupported_source"
    assert fetcher.calls == []


def test_metadata_is_saved_even_if_every_chapter_fails(store, stats, no_wait):
    fetcher = FakeFetcher({novel_url(): novel_page(chapters="3")})

    make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    novel = store.get_novel(novel_url())
    assert novel is not None
    assert novel.total_chapters == "3"
    assert store.chapter_numbers(novel.id) == []
    assert stats.chapters_errored == 3


class FlakyStore(ProgressStore):
    def __init__(self, session_factory, fail_chapters=(), fail_refs=(), fail_novel=False):
        super().__init__(session_factory)
        self.fail_chapters = set(fail_chapters)
        self.fail_refs = set(fail_refs)
        self.fail_novel = fail_novel
        self.ref_attempts = []

    def upsert_novel(self, identity, metadata):
        if self.fail_novel:
            raise PersistenceError("novel write failed")
        return super().upsert_novel(identity, metadata)

    def upsert_chapter(self, novel_id, chapter_number, chapter):
        if chapter_number in self.fail_chapters:
            raise PersistenceError(f"chapter {chapter_number} write failed")
        return super().upsert_chapter(novel_id, chapter_number, chapter)

    def add_chapter_reference(self, novel_id, chapter_id):
        self.ref_attempts.append(chapter_id)
        if chapter_id in self.fail_refs:
            raise PersistenceError("reference write failed")
        return super().add_chapter_reference(novel_id, chapter_id)


def test_chapter_write_failure_is_counted_and_loop_continues(session_factory, stats, no_wait):
    store = FlakyStore(session_factory, fail_chapters={2})

    make_ingestor(FakeFetcher(site_pages(3)), store, stats, no_wait).ingest(novel_url())

    novel_id = store.get_novel(novel_url()).id
    assert store.chapter_numbers(novel_id) == [1, 3]
    assert stats.chapters_succeeded == 3
    assert stats.chapter_db_updates == 2
    assert stats.db_errors == 1
    # No reference is attempted for a chapter that was never stored
    assert len(store.ref_attempts) == 2


def test_reference_failure_keeps_the_saved_chapter(session_factory, stats, no_wait):
    store = FlakyStore(session_factory, fail_refs={1})

    make_ingestor(FakeFetcher(site_pages(2)), store, stats, no_wait).ingest(novel_url())

    novel_id = store.get_novel(novel_url()).id
    assert store.chapter_numbers(novel_id) == [1, 2]
    assert len(store.chapter_references(novel_id)) == 1
    assert stats.db_errors == 1
    assert stats.chapter_db_updates == 2


def test_novel_write_failure_skips_novel(session_factory, stats, no_wait):
    store = FlakyStore(session_factory, fail_novel=True)
    fetcher = FakeFetcher(site_pages(2))

    outcome = make_ingestor(fetcher, store, stats, no_wait).ingest(novel_url())

    assert outcome.reason == "novel_persistence_failed"
    assert stats.db_errors == 1
    assert stats.novels_skipped == 1
    assert fetcher.chapter_calls() == []
