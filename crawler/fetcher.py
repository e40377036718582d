"""Rate-limited page fetching."""
import logging
from typing import Optional

import requests

from crawler.pacing import Pacer

logger = logging.getLogger(__name__)


class FetchError(Exception):
    """Transport or HTTP failure for a single URL."""

    def __init__(self, url: str, reason: str, status_code: Optional[int] = None):
        self.url = url
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to fetch {url}: {reason}")


class Fetcher:
    """
    Fetch pages one at a time over a shared ``requests`` session.

    The pacer is consulted before every request. Failures are raised as
    ``FetchError`` and never retried here; callers decide what to skip.
    """

    def __init__(
        self,
        pacer: Pacer,
        user_agent: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ):
        self.pacer = pacer
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en",
        })

    @classmethod
    def from_settings(cls, settings) -> "Fetcher":
        return cls(
            pacer=Pacer.from_milliseconds(settings.request_delay_ms, name="fetch"),
            user_agent=settings.user_agent,
            timeout=settings.request_timeout_seconds,
        )

    def fetch(self, url: str) -> str:
        """
        GET a page and return its decoded body.

        Args:
            url: Absolute page URL

        Returns:
            Response text

        Raises:
            FetchError: On any connection, timeout or non-2xx failure
        """
        self.pacer.wait()
        logger.info(f"Fetching {url}")

        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status_code = e.response.status_code if e.response is not None else None
            raise FetchError(url, str(e), status_code=status_code) from e
        except requests.RequestException as e:
            raise FetchError(url, str(e)) from e

        # requests assumes ISO-8859-1 for text/* without a charset
        if 'charset' not in response.headers.get('Content-Type', '').lower():
            response.encoding = response.apparent_encoding

        return response.text

    def close(self):
        self.session.close()
