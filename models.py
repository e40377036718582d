"""Database models for the novel scraper."""
from sqlalchemy import (
    Column, Integer, String, Text, DateTime, Enum,
    ForeignKey, Index, Table
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from database import Base
import enum


class NovelStatus(str, enum.Enum):
    """Novel publication status."""
    ONGOING = "ongoing"
    COMPLETED = "completed"
    UNKNOWN = "unknown"


# Many-to-many association table
novel_genres = Table(
    'novel_genres',
    Base.metadata,
    Column('novel_id', Integer, ForeignKey('novels.id', ondelete='CASCADE'), primary_key=True),
    Column('genre_id', Integer, ForeignKey('genres.id', ondelete='CASCADE'), primary_key=True),
    Index('ix_novel_genres_novel_id', 'novel_id'),
    Index('ix_novel_genres_genre_id', 'genre_id'),
)

# Novel -> chapter back-references; the composite key gives set semantics
novel_chapter_refs = Table(
    'novel_chapter_refs',
    Base.metadata,
    Column('novel_id', Integer, ForeignKey('novels.id', ondelete='CASCADE'), primary_key=True),
    Column('chapter_id', Integer, ForeignKey('chapters.id', ondelete='CASCADE'), primary_key=True),
    Index('ix_novel_chapter_refs_novel_id', 'novel_id'),
)


class Novel(Base):
    """Novel model - one row per tracked landing page URL."""
    __tablename__ = 'novels'

    id = Column(Integer, primary_key=True, index=True)
    novel_url = Column(String(1000), nullable=False, unique=True, index=True)
    title = Column(String(500), nullable=False, index=True)
    slug = Column(String(500), nullable=False, index=True)
    author = Column(String(500), nullable=True)
    rank = Column(String(100), nullable=True)
    total_chapters = Column(String(100), nullable=True)  # as reported by the site
    views = Column(String(100), nullable=True)
    bookmarks = Column(String(100), nullable=True)
    status = Column(Enum(NovelStatus), default=NovelStatus.UNKNOWN, nullable=False)
    status_text = Column(String(100), nullable=True)
    summary = Column(Text, nullable=True)
    chapters_url = Column(String(1000), nullable=True)
    image_url = Column(String(1000), nullable=True)
    last_scraped = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    chapters = relationship("Chapter", back_populates="novel", cascade="all, delete-orphan")
    chapter_refs = relationship("Chapter", secondary=novel_chapter_refs, viewonly=True)
    genres = relationship("Genre", secondary=novel_genres, back_populates="novels")

    def __repr__(self):
        return f"<Novel(id={self.id}, title='{self.title}', url='{self.novel_url}')>"


class Chapter(Base):
    """Chapter model, unique per (novel, chapter number)."""
    __tablename__ = 'chapters'

    id = Column(Integer, primary_key=True, index=True)
    novel_id = Column(Integer, ForeignKey('novels.id', ondelete='CASCADE'), nullable=False)
    chapter_number = Column(Integer, nullable=False)
    title = Column(String(500), nullable=False)
    content = Column(Text, nullable=False)
    source_url = Column(String(1000), nullable=False)
    word_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False)

    # Relationships
    novel = relationship("Novel", back_populates="chapters")

    # Backs both the upsert lookup and the MAX(chapter_number) resume query
    __table_args__ = (
        Index('ix_chapters_novel_chapter', 'novel_id', 'chapter_number', unique=True),
    )

    def __repr__(self):
        return f"<Chapter(id={self.id}, novel_id={self.novel_id}, number={self.chapter_number})>"


class Genre(Base):
    """Genre model."""
    __tablename__ = 'genres'

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False, unique=True, index=True)
    slug = Column(String(100), nullable=False, unique=True, index=True)

    # Relationships
    novels = relationship("Novel", secondary=novel_genres, back_populates="genres")

    def __repr__(self):
        return f"<Genre(id={self.id}, name='{self.name}', slug='{self.slug}')>"
