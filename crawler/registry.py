"""Map novel URLs to the extractor that understands their markup."""
import logging
from typing import Dict, Optional
from urllib.parse import urlparse

from crawler.extractors.base_extractor import BaseExtractor
from crawler.extractors.novelfire import NovelFireExtractor

logger = logging.getLogger(__name__)


class ExtractorRegistry:
    """
    Registry mapping domains to extractor instances.

    Used to select the appropriate extractor for a given novel URL.
    """

    DOMAIN_EXTRACTOR_MAP = {
        'novelfire.net': NovelFireExtractor,
        'www.novelfire.net': NovelFireExtractor,
        # Add more domain -> extractor mappings here
    }

    def __init__(self, extractors: Optional[Dict[str, BaseExtractor]] = None):
        if extractors is None:
            extractors = {
                domain: extractor_cls()
                for domain, extractor_cls in self.DOMAIN_EXTRACTOR_MAP.items()
            }
        self.extractors = extractors

    def get_extractor_for_url(self, url: str) -> Optional[BaseExtractor]:
        """
        Determine which extractor to use for a given URL.

        Returns:
            Extractor instance or None if the domain is not supported
        """
        domain = urlparse(url).netloc.lower()
        extractor = self.extractors.get(domain)

        if extractor is None:
            logger.warning(f"No extractor registered for domain: {domain}")

        return extractor
