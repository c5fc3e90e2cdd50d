"""
Page Fetcher - single bounded GET of a recipe source page
==========================================================

Fetches the HTML of a recipe page and maps the transport outcome to a
FetchResult:

- content:   the server answered with a non-error status, body attached
- not_found: the server answered 404 (the page no longer exists)
- error:     anything else (timeout, DNS/connection failure, other 4xx/5xx,
             unexpected exception)

No retries happen here. A recipe whose fetch fails is simply picked up again
on the next run.
"""

from dataclasses import dataclass
from typing import Dict, Literal, Optional, Union

import requests
from requests.adapters import HTTPAdapter

from config import DEFAULT_USER_AGENT
from tools.logging_utils import get_logger

logger = get_logger(__name__)


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass(frozen=True)
class FetchResult:
    """Outcome of fetching one page."""
    status: Literal['content', 'not_found', 'error']
    body: Optional[Union[str, bytes]] = None
    error: Optional[str] = None
    status_code: Optional[int] = None

    @classmethod
    def content(cls, body: Union[str, bytes], status_code: Optional[int] = None) -> "FetchResult":
        return cls(status='content', body=body, status_code=status_code)

    @classmethod
    def not_found(cls) -> "FetchResult":
        return cls(status='not_found', status_code=404)

    @classmethod
    def other_error(cls, description: str, status_code: Optional[int] = None) -> "FetchResult":
        return cls(status='error', error=description, status_code=status_code)


# =============================================================================
# FETCHER
# =============================================================================

class PageFetcher:
    """
    Blocking page fetcher with a fixed timeout and identity header.

    Args:
        timeout_ms: Request timeout in milliseconds
        user_agent: User-Agent header sent with every request
        session: Pre-built requests.Session (tests inject a stub)
    """

    def __init__(
        self,
        timeout_ms: int = 10000,
        user_agent: str = DEFAULT_USER_AGENT,
        session: Optional[requests.Session] = None,
    ):
        self.timeout = timeout_ms / 1000.0
        self.headers: Dict[str, str] = {"User-Agent": user_agent}

        if session is None:
            session = requests.Session()
            # No urllib3-level retries either
            adapter = HTTPAdapter(max_retries=0)
            session.mount('http://', adapter)
            session.mount('https://', adapter)
        self.session = session

    def __enter__(self) -> "PageFetcher":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def close(self) -> None:
        """Clean up connections."""
        self.session.close()

    def fetch(self, url: Optional[str]) -> FetchResult:
        """
        Fetch one page.

        Args:
            url: Page URL

        Returns:
            FetchResult - never raises
        """
        if not url or not str(url).strip():
            return FetchResult.other_error("Recipe has no source URL")

        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.debug(f"Timeout after {self.timeout:.1f}s: {url}")
            return FetchResult.other_error(f"Timed out after {self.timeout:.1f}s")
        except requests.exceptions.RequestException as e:
            logger.debug(f"Request failed for {url}: {e}")
            return FetchResult.other_error(f"Request failed: {e}")
        except Exception as e:
            logger.warning(f"Unexpected error fetching {url}: {e}")
            return FetchResult.other_error(f"Unexpected error: {e}")

        if response.status_code == 404:
            return FetchResult.not_found()

        if response.status_code >= 400:
            return FetchResult.other_error(
                f"HTTP {response.status_code}", status_code=response.status_code
            )

        # Undecoded bytes; BeautifulSoup reads the page's <meta charset>
        try:
            body = response.content
        except Exception as e:
            return FetchResult.other_error(
                f"Unreadable response body: {e}", status_code=response.status_code
            )

        return FetchResult.content(body, status_code=response.status_code)
