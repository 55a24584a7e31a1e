"""
Unit tests for crawl module.
"""
from unittest.mock import MagicMock

import pytest
import requests

from topic_coverage.core.errors import ScrapingError
from topic_coverage.core.models import Heading
from topic_coverage.crawl import (
    WebScraper, clean_content, extract_title_from_content, markdown_headings, scrape_multiple,
    validate_content
)
from topic_coverage.infrastructure.cache import MemoryCache
from tests.fakes import FakeScraper, make_document

FIRST_PARAGRAPH = "First paragraph about search engine optimization and rankings today."
SECOND_PARAGRAPH = "Second paragraph covering keyword research for content teams."

PAGE_HTML = (
    '<html><head><title>SEO Guide | Acme</title>'
    '<meta name="description" content="Learn SEO the practical way.">'
    '<meta name="author" content="Jane Doe"></head>'
    '<body><nav>Home About Pricing</nav><h1>SEO Guide</h1>'
    f'<p>{FIRST_PARAGRAPH}</p><p>{SECOND_PARAGRAPH}</p>'
    '<script>var tracking = true;</script>'
    '<footer>Copyright 2024 Acme. All rights reserved.</footer></body></html>'
)


def html_session(html=PAGE_HTML):
    session = MagicMock()
    response = MagicMock()
    response.text = html
    session.get.return_value = response
    return session


def html_scraper(session, **kwargs):
    return WebScraper(firecrawl_api_key='', session=session, retry_delay=0, **kwargs)


class TestParseHtml:
    """Test WebScraper.parse_html."""

    def test_extracts_fields(self):
        document = html_scraper(MagicMock()).parse_html("https://example.com/seo", PAGE_HTML)

        assert document.title == "SEO Guide | Acme"
        assert document.meta_description == "Learn SEO the practical way."
        assert document.author == "Jane Doe"
        assert document.headings == (Heading(1, "SEO Guide"),)
        assert document.word_count == len(document.body_text.split())

    def test_body_keeps_paragraph_breaks(self):
        """Block elements become blank-line paragraph breaks."""
        document = html_scraper(MagicMock()).parse_html("https://example.com/seo", PAGE_HTML)
        assert f"{FIRST_PARAGRAPH}\n\n{SECOND_PARAGRAPH}" in document.body_text

    def test_unwanted_elements_removed(self):
        document = html_scraper(MagicMock()).parse_html("https://example.com/seo", PAGE_HTML)
        assert "Pricing" not in document.body_text
        assert "tracking" not in document.body_text
        assert "rights reserved" not in document.body_text

    def test_title_falls_back_to_h1(self):
        html = f"<html><body><h1>Keyword Research</h1><p>{FIRST_PARAGRAPH}</p></body></html>"
        document = html_scraper(MagicMock()).parse_html("https://example.com", html)
        assert document.title == "Keyword Research"


class TestWebScraper:
    """Test WebScraper.scrape."""

    def test_scrape_html(self):
        session = html_session()
        document = html_scraper(session).scrape("https://example.com/seo")

        assert document.url == "https://example.com/seo"
        assert document.title == "SEO Guide | Acme"
        kwargs = session.get.call_args.kwargs
        assert kwargs["timeout"] == 30
        assert "User-Agent" in kwargs["headers"]

    def test_invalid_url(self):
        with pytest.raises(ScrapingError) as exc_info:
            html_scraper(MagicMock()).scrape("not-a-url")
        assert exc_info.value.url == "not-a-url"

    def test_retries_then_fails(self):
        session = MagicMock()
        session.get.side_effect = requests.ConnectionError("connection refused")

        with pytest.raises(ScrapingError) as exc_info:
            html_scraper(session, max_retries=2).scrape("https://example.com")

        assert session.get.call_count == 2
        assert exc_info.value.url == "https://example.com"

    def test_http_status_carried(self):
        session = MagicMock()
        response = MagicMock()
        response.status_code = 404
        response.raise_for_status.side_effect = requests.HTTPError("404", response=response)
        session.get.return_value = response

        with pytest.raises(ScrapingError) as exc_info:
            html_scraper(session, max_retries=1).scrape("https://example.com/missing")
        assert exc_info.value.status_code == 404

    def test_error_page_rejected(self):
        """A page that looks like an error page is a scraping failure, not content."""
        html = (f'<html><head><title>Page Not Found</title></head>'
                f'<body><p>{FIRST_PARAGRAPH}</p></body></html>')
        scraper = html_scraper(html_session(html), cache=MemoryCache())

        with pytest.raises(ScrapingError) as exc_info:
            scraper.scrape("https://example.com/gone")

        assert exc_info.value.url == "https://example.com/gone"
        assert len(scraper.cache) == 0

    def test_cached_content(self):
        session = html_session()
        scraper = html_scraper(session, cache=MemoryCache())

        first = scraper.scrape("https://example.com/seo")
        second = scraper.scrape("https://example.com/seo")

        assert session.get.call_count == 1
        assert second.body_text == first.body_text
        assert second.headings == first.headings

    def test_firecrawl_first(self):
        session = MagicMock()
        session.post.return_value.json.return_value = {
            'success': True,
            'data': {
                'markdown': f"# SEO Guide\n\n{FIRST_PARAGRAPH}\n\n## Keywords\n\n{SECOND_PARAGRAPH}",
                'metadata': {'title': 'SEO Guide', 'description': 'Learn SEO.'},
            },
        }
        scraper = WebScraper(firecrawl_api_key='fc-key', session=session)

        document = scraper.scrape("https://example.com/seo")

        assert document.title == "SEO Guide"
        assert document.meta_description == "Learn SEO."
        assert document.headings == (Heading(1, "SEO Guide"), Heading(2, "Keywords"))
        assert session.post.call_args.kwargs["headers"]["Authorization"] == "Bearer fc-key"
        session.get.assert_not_called()

    def test_firecrawl_failure_falls_back_to_html(self):
        session = html_session()
        session.post.return_value.json.return_value = {'success': False, 'error': 'blocked'}
        scraper = WebScraper(firecrawl_api_key='fc-key', session=session, retry_delay=0)

        document = scraper.scrape("https://example.com/seo")

        assert document.title == "SEO Guide | Acme"
        assert scraper.chain.strategy_names == ['firecrawl', 'html']


class TestContentHelpers:
    """Test module-level content helpers."""

    def test_clean_content(self):
        assert clean_content("Great page.  All rights reserved") == "Great page."
        assert clean_content("a" * 100, max_chars=10) == "a" * 10 + "..."

    def test_markdown_headings(self):
        headings = markdown_headings("# Title\ntext\n### Sub ###\n####### too deep")
        assert headings == [Heading(1, "Title"), Heading(3, "Sub")]

    def test_extract_title_from_content(self):
        assert extract_title_from_content("Short\nrest") == "Untitled"
        assert extract_title_from_content("A reasonable page title\nbody") == "A reasonable page title"

    def test_validate_content(self):
        assert validate_content(make_document(body=FIRST_PARAGRAPH))
        assert not validate_content(make_document(body="tiny"))
        assert not validate_content(make_document(title="404 Not Found", body=FIRST_PARAGRAPH))


class TestScrapeMultiple:
    """Test scrape_multiple function."""

    def test_order_and_failures(self):
        """Results keep input order and failed URLs become None."""
        docs = {url: make_document(url=url) for url in ("https://a.com", "https://c.com")}
        scraper = FakeScraper(docs, failing=["https://b.com"])
        sleeps = []

        results = scrape_multiple(scraper, ["https://a.com", "https://b.com", "https://c.com"],
                                  concurrency=2, delay=0.5, sleep=sleeps.append)

        assert [r.url if r else None for r in results] == ["https://a.com", None, "https://c.com"]
        assert sleeps == [0.5]

    def test_empty(self):
        assert scrape_multiple(FakeScraper({}), [], sleep=lambda s: None) == []
