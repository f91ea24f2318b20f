"""Unit tests for CrawlerService discovery, fetching, and HTML text extraction.

All HTTP traffic is served by ``httpx.MockTransport``.
"""

from __future__ import annotations

import asyncio

import httpx
import pytest

from groundwell.models.rag import CrawledPage
from groundwell.models.source import CrawlType
from groundwell.services.crawler import CrawlerService, parse_page
from groundwell.utils.errors import CrawlError

_SITE: dict[str, str] = {
    "http://example.com/": """
        <html><head><title>Home</title></head><body>
          <a href="/about">About</a>
          <a href="http://other.com/elsewhere">Off-site</a>
          <a href="/faq#shipping">Fragment</a>
          <a href="http://example.com/contact">Contact</a>
        </body></html>""",
    "http://example.com/about": """
        <html><body><p>About us</p><a href="/">Home</a><a href="/missing">Gone</a></body></html>""",
    "http://example.com/contact": "<html><body><p>Write to us</p></body></html>",
    "http://example.com/sitemap.xml": """<?xml version="1.0" encoding="UTF-8"?>
        <urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
          <url><loc>http://example.com/about</loc></url>
          <url><loc> http://example.com/contact </loc></url>
          <url><loc></loc></url>
        </urlset>""",
}


class _Recorder:
    """MockTransport handler serving ``_SITE`` and logging every request."""

    def __init__(self, pages: dict[str, str] | None = None) -> None:
        self.pages = pages if pages is not None else _SITE
        self.requested: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requested.append(url)
        if url in self.pages:
            return httpx.Response(200, text=self.pages[url], headers={"content-type": "text/html"})
        return httpx.Response(404, text="not found")


def _crawler(handler, **kwargs) -> CrawlerService:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return CrawlerService(client=client, **kwargs)


class TestParsePage:
    def test_title_and_body_text(self) -> None:
        html = (
            "<html><head><title> Docs </title><style>p{}</style></head><body>"
            "<header>Site header</header><nav>Menu</nav>"
            "<main><h1>Install</h1><p>Run the <b>installer</b>.</p></main>"
            "<script>var x = 1;</script><!-- comment -->"
            "<aside>Ads</aside><footer>Copyright</footer>"
            "</body></html>"
        )
        page = parse_page("http://example.com/docs", html)

        assert page.title == "Docs"
        assert page.content == "Install Run the installer ."
        for skipped in ("Site header", "Menu", "var x", "comment", "Ads", "Copyright"):
            assert skipped not in page.content

    def test_missing_title_and_body(self) -> None:
        page = parse_page("http://example.com/", "<p>orphan</p>")
        assert page.title is None

    def test_custom_skip_tags(self) -> None:
        html = "<html><body><nav>Menu</nav><p>Text</p></body></html>"
        page = parse_page("http://example.com/", html, skip_tags=frozenset({"p"}))
        assert page.content == "Menu"

    def test_as_text_prefixes_title(self) -> None:
        page = CrawledPage(url="u", title="Title", content="Body")
        assert page.as_text() == "Title\nBody"
        assert CrawledPage(url="u", content="Body").as_text() == "Body"


class TestFullSiteDiscovery:
    @pytest.mark.asyncio
    async def test_same_host_breadth_first(self) -> None:
        handler = _Recorder()
        crawler = _crawler(handler)

        urls = await crawler.discover("http://example.com/", CrawlType.FULL)

        assert urls == [
            "http://example.com/",
            "http://example.com/about",
            "http://example.com/contact",
            "http://example.com/missing",
        ]
        assert not any("other.com" in u for u in urls)
        assert not any("other.com" in u for u in handler.requested)
        assert not any("#" in u for u in urls)

    @pytest.mark.asyncio
    async def test_url_cap(self) -> None:
        links = "".join(f'<a href="/p{i}">p{i}</a>' for i in range(20))
        pages = {"http://example.com/": f"<html><body>{links}</body></html>"}
        crawler = _crawler(_Recorder(pages), max_urls=3)

        urls = await crawler.crawl_full_site("http://example.com/")

        assert len(urls) == 3
        assert urls[0] == "http://example.com/"

    @pytest.mark.asyncio
    async def test_invalid_seed(self) -> None:
        crawler = _crawler(_Recorder())
        with pytest.raises(CrawlError, match="Invalid base URL"):
            await crawler.crawl_full_site("not a url")


class TestSitemapDiscovery:
    @pytest.mark.asyncio
    async def test_loc_entries(self) -> None:
        handler = _Recorder()
        crawler = _crawler(handler)

        urls = await crawler.discover("http://example.com/", "sitemap")

        assert handler.requested == ["http://example.com/sitemap.xml"]
        assert urls == ["http://example.com/about", "http://example.com/contact"]

    @pytest.mark.asyncio
    async def test_missing_sitemap_fails(self) -> None:
        crawler = _crawler(_Recorder(pages={}))
        with pytest.raises(CrawlError, match="sitemap"):
            await crawler.crawl_sitemap("http://example.com")

    @pytest.mark.asyncio
    async def test_unknown_mode(self) -> None:
        crawler = _crawler(_Recorder())
        with pytest.raises(CrawlError, match="Invalid crawl type"):
            await crawler.discover("http://example.com/", "deep")


class TestFetchPages:
    @pytest.mark.asyncio
    async def test_failures_stay_in_their_slot(self) -> None:
        crawler = _crawler(_Recorder(), max_concurrent=2)

        results = await crawler.fetch_pages(
            [
                "http://example.com/about",
                "http://example.com/missing",
                "http://example.com/contact",
            ]
        )

        assert isinstance(results[0], CrawledPage)
        assert isinstance(results[1], CrawlError)
        assert "404" in results[1].message
        assert isinstance(results[2], CrawledPage)
        assert results[2].content == "Write to us"

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self) -> None:
        in_flight = 0
        peak = 0

        async def handler(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, text="<html><body>ok</body></html>")

        crawler = _crawler(handler, max_concurrent=3)
        results = await crawler.fetch_pages([f"http://example.com/{i}" for i in range(12)])

        assert len(results) == 12
        assert all(isinstance(r, CrawledPage) for r in results)
        assert peak <= 3

    @pytest.mark.asyncio
    async def test_request_timeout(self) -> None:
        async def handler(request: httpx.Request) -> httpx.Response:
            await asyncio.sleep(1)
            return httpx.Response(200, text="late")

        crawler = _crawler(handler, request_timeout=0.05)
        with pytest.raises(CrawlError, match="Timed out"):
            await crawler.fetch_page("http://example.com/slow")

    def test_rejects_non_positive_concurrency(self) -> None:
        with pytest.raises(ValueError):
            CrawlerService(max_concurrent=0)
