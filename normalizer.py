"""Chapter body cleaning, slugs and genre normalization."""
import re
from bs4 import BeautifulSoup
import bleach
from slugify import slugify
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class ContentCleaner:
    """
    Reduce scraped chapter markup to reader-friendly HTML.

    Scripts, inline ads and site chrome are dropped; only a small set of
    text formatting tags survives.
    """

    ALLOWED_TAGS = [
        'p', 'br', 'em', 'strong', 'b', 'i', 'u',
        'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
        'blockquote', 'ol', 'ul', 'li',
        'hr', 'span', 'div',
    ]

    ALLOWED_ATTRIBUTES = {
        '*': ['class'],
    }

    # Class/id fragments that mark non-story blocks inside chapter bodies
    JUNK_PATTERNS = [
        r'ad[s]?[-_]',
        r'advertisement',
        r'adsbox',
        r'banner',
        r'nav[-_]',
        r'chapter-nav',
        r'social',
        r'share',
        r'comment',
        r'popup',
        r'modal',
    ]

    def __init__(self):
        self.junk_pattern = re.compile('|'.join(self.JUNK_PATTERNS), re.IGNORECASE)

    def clean_html(self, html: Optional[str]) -> str:
        """
        Clean a chapter body.

        Args:
            html: Raw HTML fragment

        Returns:
            Sanitized HTML, or "" when nothing readable remains
        """
        if not html:
            return ""

        soup = BeautifulSoup(html, 'lxml')

        for tag in soup(['script', 'style', 'iframe', 'noscript', 'ins']):
            tag.decompose()

        for element in soup.find_all(self._is_junk):
            if not element.decomposed:
                element.decompose()

        clean = bleach.clean(
            str(soup),
            tags=self.ALLOWED_TAGS,
            attributes=self.ALLOWED_ATTRIBUTES,
            strip=True,
        )

        clean = self._normalize_whitespace(clean)

        # Markup with no text left is treated as empty
        if not self.extract_text(clean):
            return ""

        return clean

    def _is_junk(self, element) -> bool:
        marker = ' '.join(element.get('class', [])) + ' ' + (element.get('id') or '')
        return bool(marker.strip()) and bool(self.junk_pattern.search(marker))

    def _normalize_whitespace(self, html: str) -> str:
        html = re.sub(r'\n{3,}', '\n\n', html)
        html = re.sub(r' {2,}', ' ', html)
        html = re.sub(r'<p>\s*</p>', '', html)
        html = re.sub(r'<div>\s*</div>', '', html)
        return html.strip()

    def extract_text(self, html: str) -> str:
        """Plain text of an HTML fragment."""
        if not html:
            return ""
        soup = BeautifulSoup(html, 'lxml')
        return soup.get_text(separator=' ', strip=True)

    def count_words(self, html: str) -> int:
        return len(self.extract_text(html).split())


class SlugGenerator:
    """Generate URL-safe slugs from titles."""

    @staticmethod
    def generate_slug(text: str) -> str:
        return slugify(text, max_length=500)


class GenreNormalizer:
    """
    Map raw genre labels to stable slugs.

    Known spellings are mapped explicitly; anything else falls back to its
    slug when that slug has a sensible length.
    """

    GENRE_MAPPINGS = {
        'fantasy': 'fantasy',
        'action': 'action',
        'adventure': 'adventure',
        'romance': 'romance',
        'mystery': 'mystery',
        'horror': 'horror',
        'drama': 'drama',
        'comedy': 'comedy',
        'tragedy': 'tragedy',
        'xianxia': 'xianxia',
        'xuanhuan': 'xuanhuan',
        'wuxia': 'wuxia',
        'martial arts': 'martial-arts',
        'sci-fi': 'science-fiction',
        'scifi': 'science-fiction',
        'science fiction': 'science-fiction',
        'slice of life': 'slice-of-life',
        'psychological': 'psychological',
        'supernatural': 'supernatural',
        'mature': 'mature',
        'seinen': 'seinen',
        'shounen': 'shounen',
        'isekai': 'isekai',
        'litrpg': 'litrpg',
    }

    @classmethod
    def normalize_genre(cls, raw_genre: str) -> Optional[str]:
        if not raw_genre:
            return None

        clean = raw_genre.strip().lower()

        if clean in cls.GENRE_MAPPINGS:
            return cls.GENRE_MAPPINGS[clean]

        slug = SlugGenerator.generate_slug(clean)
        if slug and 2 <= len(slug) <= 50:
            return slug

        logger.debug(f"Dropping unusable genre label: {raw_genre!r}")
        return None

    @classmethod
    def normalize_genres(cls, raw_genres: List[str]) -> List[str]:
        """Normalize, deduplicate and sort genre labels."""
        normalized = set()

        for genre in raw_genres or []:
            slug = cls.normalize_genre(genre)
            if slug:
                normalized.add(slug)

        return sorted(normalized)
