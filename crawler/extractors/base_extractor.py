"""Base extractor class for all site-specific page parsers."""
import re
from abc import ABC, abstractmethod
from typing import Optional

from scrapy.http import HtmlResponse

from normalizer import ContentCleaner
from schemas import (
    ChapterContent, ChapterExtraction, Missing, NovelExtraction, NovelMetadata,
)

UNTITLED_CHAPTER = "Untitled Chapter"


class BaseExtractor(ABC):
    """
    Base extractor that all site-specific extractors must inherit from.

    Subclasses only pick fields out of a response; this class owns the
    required-field checks and body cleaning, so every site yields either a
    complete result or ``Missing``.
    """

    # Must be set by child extractors
    name: str = "base"

    def __init__(self, cleaner: Optional[ContentCleaner] = None):
        self.cleaner = cleaner or ContentCleaner()

    @staticmethod
    def make_response(content: str, url: str) -> HtmlResponse:
        """Wrap fetched text so selectors and urljoin work on it."""
        return HtmlResponse(url=url, body=content, encoding='utf-8')

    def parse_novel(self, content: str, url: str) -> NovelExtraction:
        """
        Parse a novel landing page.

        Returns:
            NovelMetadata, or Missing naming the first absent required field
        """
        fields = self.extract_novel_metadata(self.make_response(content, url))

        for required in ('title', 'chapters_url'):
            if not fields.get(required):
                return Missing(field=required)

        return NovelMetadata(**fields)

    def parse_chapter(self, content: str, url: str) -> ChapterExtraction:
        """
        Parse a chapter page.

        Returns:
            ChapterContent with a cleaned non-empty body, or Missing('content')
        """
        fields = self.extract_chapter(self.make_response(content, url))

        body = self.cleaner.clean_html(fields.get('content'))
        if not body:
            return Missing(field='content')

        return ChapterContent(
            url=url,
            title=fields.get('title') or UNTITLED_CHAPTER,
            content=body,
            word_count=self.cleaner.count_words(body),
        )

    def chapter_url(self, metadata: NovelMetadata, chapter_number: int) -> str:
        """
        Build the URL of a chapter from the novel's chapter list URL.

        ``https://site/book/slug/chapters`` becomes
        ``https://site/book/slug/chapter-<n>``.
        """
        base = metadata.chapters_url.rstrip('/')
        if base.endswith('/chapters'):
            base = base[:-len('/chapters')]
        return f"{base}/chapter-{chapter_number}"

    @abstractmethod
    def extract_novel_metadata(self, response: HtmlResponse) -> dict:
        """
        Extract novel-level fields from the landing page.

        Must return a dict with the NovelMetadata keys it could find;
        absent values may be None or omitted.
        """

    @abstractmethod
    def extract_chapter(self, response: HtmlResponse) -> dict:
        """
        Extract chapter fields from a chapter page.

        Must return a dict with 'title' and 'content' (raw HTML) keys.
        """

    @staticmethod
    def clean_text(value: Optional[str]) -> Optional[str]:
        """Collapse whitespace; empty strings become None."""
        if value is None:
            return None
        value = re.sub(r'\s+', ' ', value).strip()
        return value or None
