"""Website fetcher for website analysis.

Features:
- Async HTTP client using httpx with redirects followed
- Breadth-first crawl of same-site pages, capped at max_pages
- Text extraction with BeautifulSoup (boilerplate removed)
- Reachability probe used by analyze-website diagnostics

Fetch failures on individual pages are logged and skipped; an unreachable
root page yields an empty result rather than an exception.
"""

import time
from dataclasses import dataclass, field

import httpx

from insight_studio.core.config import get_settings
from insight_studio.core.logging import get_logger
from insight_studio.utils.html_content import PageContent, extract_page_content
from insight_studio.utils.url import normalize_url, resolve_link, same_site

logger = get_logger(__name__)

USER_AGENT = "Mozilla/5.0 (compatible; InsightStudioBot/1.0)"
_HTML_TYPES = ("text/html", "application/xhtml+xml")


@dataclass
class WebsiteContent:
    """Pages fetched for one website."""

    root_url: str
    pages: list[PageContent] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def text_length(self) -> int:
        return sum(len(p.text) for p in self.pages)

    def to_prompt_text(self, max_chars: int) -> str:
        """Concatenate page sections, truncated to max_chars."""
        combined = "\n\n".join(p.to_prompt_section() for p in self.pages)
        return combined[:max_chars]


class WebsiteFetcher:
    """Fetches and extracts text from a company website."""

    def __init__(self, timeout: float | None = None, max_pages: int | None = None) -> None:
        settings = get_settings()
        self._timeout = timeout or settings.website_fetch_timeout
        self._max_pages = max_pages or settings.website_max_pages
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                headers={"User-Agent": USER_AGENT, "Accept": "text/html,*/*;q=0.8"},
                timeout=httpx.Timeout(self._timeout),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def _fetch_page(self, url: str) -> PageContent | None:
        client = await self._get_client()
        start = time.monotonic()
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.warning(
                "Website page fetch failed",
                extra={"url": url, "error": str(e), "error_type": type(e).__name__},
            )
            return None

        content_type = response.headers.get("content-type", "")
        if response.status_code != 200 or not content_type.startswith(_HTML_TYPES):
            logger.info(
                "Skipping website page",
                extra={"url": url, "status_code": response.status_code, "content_type": content_type},
            )
            return None

        page = extract_page_content(str(response.url), response.text)
        logger.debug(
            "Website page fetched",
            extra={
                "url": url,
                "word_count": page.word_count,
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
            },
        )
        return page

    async def fetch_site(self, root_url: str, max_pages: int | None = None) -> WebsiteContent:
        """Fetch the root page and then same-site links, breadth first.

        Args:
            root_url: Validated website URL.
            max_pages: Page cap; defaults to the configured website_max_pages.
        """
        limit = max_pages or self._max_pages
        start = time.monotonic()
        result = WebsiteContent(root_url=root_url)
        queue = [root_url]
        seen = {normalize_url(root_url)}

        while queue and len(result.pages) < limit:
            url = queue.pop(0)
            page = await self._fetch_page(url)
            if page is None:
                result.errors.append(url)
                continue
            result.pages.append(page)
            for href in page.links:
                link = resolve_link(page.url, href)
                if link is None or not same_site(link, root_url):
                    continue
                key = normalize_url(link)
                if key not in seen:
                    seen.add(key)
                    queue.append(link)

        result.duration_ms = (time.monotonic() - start) * 1000
        logger.info(
            "Website fetch complete",
            extra={
                "root_url": root_url,
                "pages_fetched": len(result.pages),
                "pages_failed": len(result.errors),
                "text_length": result.text_length,
                "duration_ms": round(result.duration_ms, 2),
            },
        )
        return result

    async def probe(self, url: str) -> tuple[bool, int | None]:
        """Whether url answers at all, and with which status code."""
        client = await self._get_client()
        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            logger.info("Website probe failed", extra={"url": url, "error": str(e)})
            return False, None
        return response.status_code < 400, response.status_code


# Global website fetcher instance
website_fetcher: WebsiteFetcher | None = None


async def init_website_fetcher() -> WebsiteFetcher:
    """Initialize the global website fetcher."""
    global website_fetcher
    if website_fetcher is None:
        website_fetcher = WebsiteFetcher()
    return website_fetcher


async def close_website_fetcher() -> None:
    """Close the global website fetcher."""
    global website_fetcher
    if website_fetcher:
        await website_fetcher.close()
        website_fetcher = None


async def get_website_fetcher() -> WebsiteFetcher:
    """Dependency for getting the website fetcher."""
    global website_fetcher
    if website_fetcher is None:
        await init_website_fetcher()
    return website_fetcher  # type: ignore[return-value]
