"""Tests for the page fetcher and HTML extraction."""

from __future__ import annotations

import httpx
import respx
from bs4.exceptions import ParserRejectedMarkup

from src.services import fetcher as fetcher_module
from src.services.content_cache import ContentCache
from src.services.fetcher import PageFetcher, build_http_client, parse_page

_PAGE = """
<html>
  <head><title>  Alter Behring Gutshof  </title><style>body {color: red}</style></head>
  <body>
    <nav>Start | Kontakt</nav>
    <h1>Willkommen</h1>
    <p>Eventlocation   in
       Marburg-Marbach.</p>
    <script>var tracking = true;</script>
    <footer>Impressum</footer>
  </body>
</html>
"""

_LISTINGS_PAGE = """
<html><head><title>Börse</title></head><body>
  <div class="w-dyn-list">
    <div class="w-dyn-item">
      <h3 fs-cmsfilter-field="Name">Maschinenbau GmbH</h3>
      <div fs-cmsfilter-field="Gesucht">VERKAUF</div>
      <p fs-cmsfilter-field="Beschreibung">Etablierter   Betrieb</p>
      <span fs-cmsfilter-field="Preis">1-5 Mio</span>
    </div>
    <div class="w-dyn-item">
      <div fs-cmsfilter-field="Gesucht">KAUF</div>
    </div>
    <div class="w-dyn-item">
      <h3 fs-cmsfilter-field="name">IT Solutions</h3>
      <div fs-cmsfilter-field="datum">01.03.2026</div>
    </div>
  </div>
</body></html>
"""


class TestParsePage:
    def test_extracts_title_and_clean_text(self):
        page = parse_page("https://hof.example/", _PAGE)
        assert page.source_url == "https://hof.example/"
        assert page.title == "Alter Behring Gutshof"
        assert page.text == "Willkommen Eventlocation in Marburg-Marbach."

    def test_strips_script_style_nav_footer(self):
        page = parse_page("https://hof.example/", _PAGE)
        for removed in ("tracking", "color: red", "Kontakt", "Impressum"):
            assert removed not in page.text

    def test_page_without_listings(self):
        assert parse_page("https://hof.example/", _PAGE).listings == []

    def test_extracts_cms_listings(self):
        page = parse_page("https://boerse.example/", _LISTINGS_PAGE)
        assert [l.name for l in page.listings] == ["Maschinenbau GmbH", "IT Solutions"]
        first = page.listings[0]
        assert first.status == "VERKAUF"
        assert first.description == "Etablierter Betrieb"
        assert first.price == "1-5 Mio"
        assert first.date is None
        assert page.listings[1].date == "01.03.2026"

    def test_missing_title(self):
        page = parse_page("https://x.example/", "<html><body><p>Hi</p></body></html>")
        assert page.title == ""
        assert page.text == "Hi"


class TestScrapeAll:
    @respx.mock
    async def test_scrapes_in_configuration_order(self):
        respx.get("https://one.example/").mock(return_value=httpx.Response(200, text="<title>One</title>"))
        respx.get("https://two.example/").mock(return_value=httpx.Response(200, text="<title>Two</title>"))
        fetcher = PageFetcher(build_http_client())

        pages = await fetcher.scrape_all(["https://two.example/", "https://one.example/"])

        assert [p.title for p in pages] == ["Two", "One"]
        await fetcher.aclose()

    @respx.mock
    async def test_failed_pages_are_omitted(self):
        respx.get("https://ok.example/").mock(return_value=httpx.Response(200, text="<title>OK</title>"))
        respx.get("https://missing.example/").mock(return_value=httpx.Response(404))
        respx.get("https://slow.example/").mock(side_effect=httpx.ReadTimeout("timeout"))
        fetcher = PageFetcher(build_http_client())

        pages = await fetcher.scrape_all(
            ["https://missing.example/", "https://ok.example/", "https://slow.example/"],
        )

        assert [p.source_url for p in pages] == ["https://ok.example/"]
        await fetcher.aclose()

    @respx.mock
    async def test_all_pages_failing_returns_empty(self):
        respx.get("https://down.example/").mock(side_effect=httpx.ConnectError("refused"))
        fetcher = PageFetcher(build_http_client())
        assert await fetcher.scrape_all(["https://down.example/"]) == []
        await fetcher.aclose()

    @respx.mock
    async def test_sends_browser_user_agent(self):
        route = respx.get("https://ua.example/").mock(return_value=httpx.Response(200, text=""))
        fetcher = PageFetcher(build_http_client())
        await fetcher.fetch("https://ua.example/")
        assert "Mozilla/5.0" in route.calls.last.request.headers["User-Agent"]
        await fetcher.aclose()

    @respx.mock
    async def test_rejected_markup_does_not_abort_pass(self, monkeypatch):
        real_parse = fetcher_module.parse_page

        def parse(url, html):
            if url == "https://bad.example/":
                raise ParserRejectedMarkup("The markup you provided was rejected by the parser")
            return real_parse(url, html)

        monkeypatch.setattr(fetcher_module, "parse_page", parse)
        respx.get("https://bad.example/").mock(
            return_value=httpx.Response(200, text="<html><body><![ xx ]>hi</body></html>"),
        )
        respx.get("https://ok.example/").mock(return_value=httpx.Response(200, text="<title>OK</title>"))
        fetcher = PageFetcher(build_http_client())

        pages = await fetcher.scrape_all(["https://bad.example/", "https://ok.example/"])

        assert [p.source_url for p in pages] == ["https://ok.example/"]
        await fetcher.aclose()

    @respx.mock
    async def test_unparsable_page_still_publishes_content(self, monkeypatch, clock):
        def parse(url, html):
            raise ParserRejectedMarkup("rejected")

        monkeypatch.setattr(fetcher_module, "parse_page", parse)
        respx.get("https://bad.example/").mock(return_value=httpx.Response(200, text="<![ xx ]>"))
        fetcher = PageFetcher(build_http_client())
        cache = ContentCache(fetcher, ["https://bad.example/"], clock=clock)

        assert await cache.get_current_content() == []
        assert cache.last_refreshed == clock.now
        await fetcher.aclose()
