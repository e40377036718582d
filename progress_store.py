"""Persisted ingestion progress: novels, chapters and chapter references."""
import logging
from datetime import datetime, timezone
from typing import List, Optional

from sqlalchemy import func, insert, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from models import Chapter, Genre, Novel, NovelStatus, novel_chapter_refs
from normalizer import GenreNormalizer, SlugGenerator
from schemas import ChapterContent, NovelMetadata

logger = logging.getLogger(__name__)

STATUS_MAP = {
    'ongoing': NovelStatus.ONGOING,
    'completed': NovelStatus.COMPLETED,
}


class PersistenceError(Exception):
    """A store write failed and was rolled back."""


class ProgressStore:
    """
    SQL-backed progress store.

    Every write opens its own session and commits before returning, so a
    chapter is durable before anything references it. The resume cursor is
    never stored; it is the highest chapter number present.
    """

    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def _open(self) -> Session:
        return self.session_factory()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert_novel(self, identity: str, metadata: NovelMetadata) -> int:
        """
        Create or overwrite the novel identified by its landing page URL.

        All metadata fields are replaced (genres included); chapters and
        chapter references are left untouched.

        Returns:
            The novel's primary key

        Raises:
            PersistenceError: If the write fails
        """
        db = self._open()
        try:
            novel = db.query(Novel).filter_by(novel_url=identity).first()

            if novel is None:
                logger.info(f"Creating novel record for {identity}")
                novel = Novel(novel_url=identity)
                db.add(novel)
            else:
                logger.info(f"Updating existing novel: {novel.id}")

            novel.title = metadata.title
            novel.slug = SlugGenerator.generate_slug(metadata.title)
            novel.author = metadata.author
            novel.rank = metadata.rank
            novel.total_chapters = metadata.total_chapters
            novel.views = metadata.views
            novel.bookmarks = metadata.bookmarks
            novel.status = STATUS_MAP.get(
                (metadata.status or '').strip().lower(), NovelStatus.UNKNOWN
            )
            novel.status_text = metadata.status
            novel.summary = metadata.summary
            novel.chapters_url = metadata.chapters_url
            novel.image_url = metadata.image_url
            novel.last_scraped = datetime.now(timezone.utc)

            self._replace_genres(db, novel, GenreNormalizer.normalize_genres(metadata.genres))

            db.commit()
            return novel.id

        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(f"Failed to upsert novel {identity}: {e}") from e
        finally:
            db.close()

    def _replace_genres(self, db: Session, novel: Novel, genre_slugs: List[str]):
        novel.genres.clear()

        for slug in genre_slugs:
            genre = db.query(Genre).filter_by(slug=slug).first()

            if not genre:
                name = slug.replace('-', ' ').title()
                genre = Genre(name=name, slug=slug)
                db.add(genre)
                db.flush()
                logger.info(f"Created new genre: {name}")

            novel.genres.append(genre)

    def upsert_chapter(self, novel_id: int, chapter_number: int, chapter: ChapterContent) -> int:
        """
        Create or overwrite chapter ``chapter_number`` of a novel.

        Returns:
            The chapter's primary key

        Raises:
            PersistenceError: If the write fails
        """
        db = self._open()
        try:
            record = db.query(Chapter).filter_by(
                novel_id=novel_id,
                chapter_number=chapter_number,
            ).first()

            if record is None:
                record = Chapter(novel_id=novel_id, chapter_number=chapter_number)
                db.add(record)

            record.source_url = chapter.url
            record.title = chapter.title
            record.content = chapter.content
            record.word_count = chapter.word_count

            db.commit()
            return record.id

        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(
                f"Failed to upsert chapter {chapter_number} of novel {novel_id}: {e}"
            ) from e
        finally:
            db.close()

    def add_chapter_reference(self, novel_id: int, chapter_id: int) -> bool:
        """
        Add a chapter to the novel's reference set.

        Returns:
            True if the reference was added, False if it was already present

        Raises:
            PersistenceError: If the write fails
        """
        db = self._open()
        try:
            exists = db.execute(
                select(novel_chapter_refs.c.chapter_id).where(
                    novel_chapter_refs.c.novel_id == novel_id,
                    novel_chapter_refs.c.chapter_id == chapter_id,
                )
            ).first()
            if exists:
                return False

            db.execute(insert(novel_chapter_refs).values(novel_id=novel_id, chapter_id=chapter_id))
            db.commit()
            return True

        except SQLAlchemyError as e:
            db.rollback()
            raise PersistenceError(
                f"Failed to reference chapter {chapter_id} from novel {novel_id}: {e}"
            ) from e
        finally:
            db.close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get_highest_chapter_number(self, novel_id: int) -> Optional[int]:
        """Highest persisted chapter number, or None when there are none."""
        db = self._open()
        try:
            return db.execute(
                select(func.max(Chapter.chapter_number)).where(Chapter.novel_id == novel_id)
            ).scalar()
        finally:
            db.close()

    def get_novel(self, identity: str) -> Optional[Novel]:
        db = self._open()
        try:
            return db.query(Novel).filter_by(novel_url=identity).first()
        finally:
            db.close()

    def list_novels(self, limit: Optional[int] = None) -> List[Novel]:
        db = self._open()
        try:
            query = db.query(Novel).order_by(Novel.id)
            if limit:
                query = query.limit(limit)
            return query.all()
        finally:
            db.close()

    def get_chapter(self, novel_id: int, chapter_number: int) -> Optional[Chapter]:
        db = self._open()
        try:
            return db.query(Chapter).filter_by(
                novel_id=novel_id,
                chapter_number=chapter_number,
            ).first()
        finally:
            db.close()

    def chapter_numbers(self, novel_id: int) -> List[int]:
        """Persisted chapter numbers in ascending order."""
        db = self._open()
        try:
            return list(db.execute(
                select(Chapter.chapter_number)
                .where(Chapter.novel_id == novel_id)
                .order_by(Chapter.chapter_number)
            ).scalars())
        finally:
            db.close()

    def chapter_references(self, novel_id: int) -> List[int]:
        """Chapter ids in the novel's reference set."""
        db = self._open()
        try:
            return sorted(db.execute(
                select(novel_chapter_refs.c.chapter_id)
                .where(novel_chapter_refs.c.novel_id == novel_id)
            ).scalars())
        finally:
            db.close()
