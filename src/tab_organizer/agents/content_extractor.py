"""
Page content extraction for the description stage.

Extractors turn a tab into a PageSnapshot. Failures never abort the
pipeline: ``extract_snapshot`` degrades to a snapshot built from the tab's
own title and URL with empty content.
"""

import re
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from bs4 import BeautifulSoup

from tab_organizer.agents.models import MAX_CONTENT_CHARS, PageSnapshot
from tab_organizer.browser.base import BrowserTab
from tab_organizer.config import get_logger

logger = get_logger(__name__)


class ContentExtractor(ABC):
    """Abstract base for page content extractors."""

    @abstractmethod
    async def extract(self, tab: BrowserTab) -> PageSnapshot:
        """
        Capture the visible content of a tab's page.

        Args:
            tab: The loaded tab

        Returns:
            Snapshot of the page

        Raises:
            Exception: Implementations may raise on any failure
        """
        pass

    async def aclose(self) -> None:
        """Release network resources held by the extractor."""
        pass


def empty_snapshot(tab: BrowserTab) -> PageSnapshot:
    """Snapshot used when the page content is unavailable."""
    return PageSnapshot(title=tab.title, url=tab.url, content_excerpt="", meta_description="")


async def extract_snapshot(extractor: ContentExtractor, tab: BrowserTab) -> PageSnapshot:
    """
    Run an extractor, degrading to an empty snapshot on failure.

    Args:
        extractor: Extractor to use
        tab: The loaded tab

    Returns:
        Extracted snapshot, or the tab's title/URL with empty content
    """
    try:
        return await extractor.extract(tab)
    except Exception as e:
        logger.warning(f"Error getting page content for tab {tab.id}: {e}")
        return empty_snapshot(tab)


class HttpContentExtractor(ContentExtractor):
    """Fetch the tab's URL and extract title, body text and meta description."""

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 10.0,
        max_chars: int = MAX_CONTENT_CHARS,
    ):
        """
        Args:
            client: Shared async HTTP client (created lazily if not given)
            timeout: Request timeout in seconds
            max_chars: Maximum characters of body text to keep (at most
                MAX_CONTENT_CHARS)

        Raises:
            ValueError: If max_chars is outside 1..MAX_CONTENT_CHARS
        """
        if not 0 < max_chars <= MAX_CONTENT_CHARS:
            raise ValueError(f"max_chars must be between 1 and {MAX_CONTENT_CHARS}, got {max_chars}")
        self._client = client
        self.timeout = timeout
        self.max_chars = max_chars
        self.headers = {
            "User-Agent": "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36"
        }

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers=self.headers, timeout=self.timeout, follow_redirects=True
            )
        return self._client

    async def extract(self, tab: BrowserTab) -> PageSnapshot:
        response = await self.client.get(tab.url)
        response.raise_for_status()
        return self.parse_html(response.text, tab)

    def parse_html(self, html: str, tab: BrowserTab) -> PageSnapshot:
        """
        Build a snapshot from raw HTML.

        Args:
            html: Page markup
            tab: Tab the page belongs to (title fallback, URL)

        Returns:
            PageSnapshot with at most max_chars of visible text
        """
        soup = BeautifulSoup(html, "html.parser")

        title_tag = soup.find("title")
        title = title_tag.get_text().strip() if title_tag else ""

        meta = soup.find("meta", attrs={"name": "description"})
        meta_description = (meta.get("content") or "").strip() if meta else ""

        # Remove non-visible elements
        for element in soup(["script", "style", "noscript", "template"]):
            element.decompose()

        body = soup.find("body") or soup
        text = body.get_text(separator="\n", strip=True)
        text = re.sub(r"\n\s*\n", "\n\n", text)

        return PageSnapshot(
            title=title or tab.title,
            url=tab.url,
            content_excerpt=text[: self.max_chars],
            meta_description=meta_description,
        )

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


class ReportedContentExtractor(ContentExtractor):
    """
    Serve snapshots reported by the browser side, keyed by tab id.

    A reported snapshot is used once, and only by a run for the URL it was
    captured from: a tab that navigated again keeps its newer report for the
    newer run. Otherwise the fallback extractor is used, or the extraction
    fails if there is none.
    """

    def __init__(self, fallback: Optional[ContentExtractor] = None):
        self.fallback = fallback
        self._reported: dict[int, PageSnapshot] = {}

    def report(self, tab_id: int, snapshot: PageSnapshot) -> None:
        """Record the content the browser captured for a tab."""
        self._reported[tab_id] = snapshot

    def discard(self, tab_id: int) -> None:
        self._reported.pop(tab_id, None)

    async def extract(self, tab: BrowserTab) -> PageSnapshot:
        snapshot = self._reported.get(tab.id)
        if snapshot is not None and snapshot.url == tab.url:
            del self._reported[tab.id]
            return snapshot
        if self.fallback is None:
            raise LookupError(f"No content reported for tab {tab.id}")
        return await self.fallback.extract(tab)

    async def aclose(self) -> None:
        if self.fallback is not None:
            await self.fallback.aclose()
