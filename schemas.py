"""Pydantic schemas for extraction results."""
from pydantic import BaseModel, Field
from typing import Optional, List, Union


class NovelMetadata(BaseModel):
    """Fields extracted from a novel's landing page."""
    title: str
    chapters_url: str
    author: Optional[str] = None
    rank: Optional[str] = None
    total_chapters: Optional[str] = None  # declared count, raw text
    views: Optional[str] = None
    bookmarks: Optional[str] = None
    status: Optional[str] = None
    genres: List[str] = Field(default_factory=list)
    summary: Optional[str] = None
    image_url: Optional[str] = None


class ChapterContent(BaseModel):
    """Fields extracted from a chapter page."""
    url: str
    title: str
    content: str  # cleaned HTML, never empty
    word_count: int = 0


class Missing(BaseModel):
    """A required field was not found on the page."""
    field: str

    def __str__(self):
        return f"missing field '{self.field}'"


NovelExtraction = Union[NovelMetadata, Missing]
ChapterExtraction = Union[ChapterContent, Missing]
