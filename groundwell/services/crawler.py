"""Web crawler: URL discovery plus bounded-concurrency page fetching.

# ─── DESIGN ────────────────────────────────────────────────────────────
#
# A crawl happens in two steps:
#
#   1. discover(seed, mode) -> [url, ...]
#        sitemap: GET {seed}/sitemap.xml and return every <loc> text.
#        full:    breadth-first link following from the seed, restricted
#                 to the seed's host, skipping URLs with a '#' fragment,
#                 capped at max_urls visited URLs.
#
#   2. fetch_pages(urls) -> [CrawledPage | CrawlError, ...]
#        Every URL is fetched under an asyncio.Semaphore(max_concurrent)
#        and a per-request wall-clock timeout.  A failed page becomes a
#        CrawlError in its slot of the result list; one bad page never
#        aborts the batch.
#
# Discovery failures (sitemap unreachable, invalid seed) raise CrawlError
# and fail the whole crawl job.  During full-mode traversal an unreachable
# page is just dropped from further traversal.
# ──────────────────────────────────────────────────────────────────────
"""

from __future__ import annotations

import asyncio
from collections import deque
from typing import Iterable
from urllib.parse import urljoin, urlparse

import httpx
import structlog
from bs4 import (
    BeautifulSoup,
    Comment,
    Declaration,
    Doctype,
    NavigableString,
    ProcessingInstruction,
    Tag,
)

from groundwell.models.rag import CrawledPage
from groundwell.models.source import CrawlType
from groundwell.utils.concurrency import throttled_gather
from groundwell.utils.errors import CrawlError

logger = structlog.get_logger(logger_name=__name__)

# Subtrees whose text is navigation chrome or code, not page content.
SKIP_TAGS = frozenset({"script", "style", "nav", "footer", "header", "aside", "iframe", "noscript"})

# NavigableString subclasses that are markup, not text.
_NON_TEXT_STRINGS = (Comment, Declaration, Doctype, ProcessingInstruction)

DEFAULT_USER_AGENT = "groundwell-crawler/0.1"


def _walk_text(node: Tag, out: list[str], skip_tags: frozenset[str]) -> None:
    for child in node.children:
        if isinstance(child, Tag):
            if child.name in skip_tags:
                continue
            _walk_text(child, out, skip_tags)
        elif isinstance(child, NavigableString) and not isinstance(child, _NON_TEXT_STRINGS):
            cleaned = child.strip()
            if cleaned:
                out.append(cleaned)


def extract_title(soup: BeautifulSoup) -> str | None:
    """Return the stripped text of the first ``<title>``, or ``None``."""
    title_tag = soup.find("title")
    if title_tag is None:
        return None
    title = title_tag.get_text(strip=True)
    return title or None


def extract_body_text(soup: BeautifulSoup, skip_tags: frozenset[str] = SKIP_TAGS) -> str:
    """Depth-first text of ``<body>`` minus skipped subtrees, joined by single spaces."""
    body = soup.find("body")
    if body is None:
        return ""
    pieces: list[str] = []
    _walk_text(body, pieces, skip_tags)
    return " ".join(pieces)


def parse_page(url: str, html: str, skip_tags: frozenset[str] = SKIP_TAGS) -> CrawledPage:
    soup = BeautifulSoup(html, "html.parser")
    return CrawledPage(
        url=url,
        title=extract_title(soup),
        content=extract_body_text(soup, skip_tags),
    )


class CrawlerService:
    """Discover and fetch pages for crawl jobs.

    Parameters
    ----------
    max_concurrent:
        Maximum page fetches in flight at once.
    request_timeout:
        Wall-clock seconds allowed per request.
    user_agent:
        ``User-Agent`` header for every request.
    max_urls:
        Upper bound on URLs visited during full-mode discovery.
    skip_tags:
        Element names whose subtrees are dropped from page text.
    client:
        Shared ``httpx.AsyncClient``.  When omitted the crawler builds and
        owns one (closed by :meth:`aclose`).
    """

    def __init__(
        self,
        max_concurrent: int = 5,
        request_timeout: float = 30.0,
        user_agent: str = DEFAULT_USER_AGENT,
        max_urls: int = 200,
        skip_tags: Iterable[str] | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if max_concurrent < 1:
            raise ValueError(f"max_concurrent must be >= 1, got {max_concurrent}")
        self._max_concurrent = max_concurrent
        self._timeout = request_timeout
        self._max_urls = max_urls
        self._skip_tags = frozenset(skip_tags) if skip_tags is not None else SKIP_TAGS
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            timeout=request_timeout,
            follow_redirects=True,
            headers={"User-Agent": user_agent},
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def discover(self, seed_url: str, mode: CrawlType | str) -> list[str]:
        """Return the URLs to fetch for *seed_url* under *mode*."""
        try:
            crawl_type = CrawlType(mode)
        except ValueError as exc:
            raise CrawlError(message=f"Invalid crawl type: {mode!r}") from exc

        if crawl_type is CrawlType.SITEMAP:
            urls = await self.crawl_sitemap(seed_url)
        else:
            urls = await self.crawl_full_site(seed_url)
        logger.info("crawl_discovered", seed=seed_url, mode=crawl_type.value, urls=len(urls))
        return urls

    async def crawl_sitemap(self, seed_url: str) -> list[str]:
        """Return every non-empty ``<loc>`` text from ``{seed_url}/sitemap.xml``."""
        sitemap_url = f"{seed_url.rstrip('/')}/sitemap.xml"
        try:
            body = await self._fetch_html(sitemap_url)
        except CrawlError as exc:
            raise CrawlError(message=f"Failed to fetch sitemap {sitemap_url}: {exc.message}") from exc

        soup = BeautifulSoup(body, "html.parser")
        urls = [loc.get_text(strip=True) for loc in soup.find_all("loc")]
        return [u for u in urls if u]

    async def crawl_full_site(self, seed_url: str) -> list[str]:
        """Breadth-first, same-host link discovery from *seed_url*."""
        seed_host = urlparse(seed_url).hostname
        if urlparse(seed_url).scheme not in ("http", "https") or not seed_host:
            raise CrawlError(message=f"Invalid base URL: {seed_url!r}")

        visited: set[str] = set()
        found: list[str] = []
        queue: deque[str] = deque([seed_url])

        while queue:
            if len(visited) >= self._max_urls:
                logger.info("crawl_url_cap_reached", seed=seed_url, cap=self._max_urls)
                break
            url = queue.popleft()
            if url in visited:
                continue
            visited.add(url)
            found.append(url)

            try:
                html = await self._fetch_html(url)
            except CrawlError as exc:
                logger.debug("crawl_page_skipped", url=url, error=exc.message)
                continue

            soup = BeautifulSoup(html, "html.parser")
            for anchor in soup.find_all("a", href=True):
                resolved = urljoin(url, anchor["href"])
                if (
                    urlparse(resolved).hostname == seed_host
                    and resolved not in visited
                    and "#" not in resolved
                ):
                    queue.append(resolved)

        return found

    # ------------------------------------------------------------------
    # Fetching
    # ------------------------------------------------------------------

    async def fetch_pages(self, urls: list[str]) -> list[CrawledPage | CrawlError]:
        """Fetch *urls* concurrently; each slot holds a page or that page's error."""
        semaphore = asyncio.Semaphore(self._max_concurrent)
        results = await throttled_gather(
            [self.fetch_page(url) for url in urls],
            semaphore=semaphore,
            return_exceptions=True,
        )

        pages: list[CrawledPage | CrawlError] = []
        for url, result in zip(urls, results):
            if isinstance(result, (CrawledPage, CrawlError)):
                pages.append(result)
            elif isinstance(result, Exception):
                # Parser bugs and the like stay isolated to this page too.
                pages.append(CrawlError(message=f"Failed to process {url}: {result}"))
            else:
                raise result
        failed = sum(1 for p in pages if isinstance(p, CrawlError))
        logger.info(
            "crawl_pages_fetched",
            requested=len(urls),
            succeeded=len(urls) - failed,
            failed=failed,
        )
        return pages

    async def fetch_page(self, url: str) -> CrawledPage:
        html = await self._fetch_html(url)
        return parse_page(url, html, self._skip_tags)

    async def _fetch_html(self, url: str) -> str:
        try:
            response = await asyncio.wait_for(self._client.get(url), timeout=self._timeout)
            response.raise_for_status()
        except asyncio.TimeoutError as exc:
            raise CrawlError(message=f"Timed out after {self._timeout:g}s fetching {url}") from exc
        except httpx.HTTPStatusError as exc:
            raise CrawlError(
                message=f"HTTP {exc.response.status_code} fetching {url}"
            ) from exc
        except httpx.HTTPError as exc:
            raise CrawlError(message=f"Failed to fetch {url}: {exc}") from exc
        return response.text
