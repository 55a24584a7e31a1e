"""
Web scraping module: fetch a page and turn it into a ScrapedDocument.

Firecrawl is tried first when an API key is configured; the plain HTML fetch
is the fallback and retries with exponential backoff.
"""
import re
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, List, Optional, Sequence

import requests
from bs4 import BeautifulSoup

from .core.errors import ProviderError, ScrapingError
from .core.interfaces import Cache, ContentScraper
from .core.models import Heading, ScrapedDocument
from .infrastructure.cache import content_cache_key
from .strategy import FallbackChain, Strategy
from .utils import (
    chunk_list, first_env_var, frequent_terms, is_valid_url, logger,
    normalize_whitespace, retry_on_failure, sanitize_text
)

FIRECRAWL_API_URL = 'https://api.firecrawl.dev/v0/scrape'
USER_AGENT = 'Mozilla/5.0 (compatible; TopicCoverage/1.0)'
TIMEOUT = 30
MAX_RETRIES = 3
MAX_CONTENT_CHARS = 50000

REMOVE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE) for pattern in (
        r'copyright\s+\d{4}',
        r'all rights reserved',
        r'privacy policy',
        r'terms of service',
        r'cookie policy',
        r'follow us on',
        r'subscribe to',
    )
]
ERROR_INDICATORS = ('404 not found', 'page not found', 'access denied', 'forbidden', 'server error')

UNWANTED_TAGS = ['script', 'style', 'nav', 'footer', 'header', 'aside', 'noscript']
BLOCK_TAGS = [
    'p', 'div', 'section', 'article', 'main', 'li', 'ul', 'ol', 'table', 'tr',
    'blockquote', 'pre', 'br', 'h1', 'h2', 'h3', 'h4', 'h5', 'h6',
]
HEADING_TAGS = ['h1', 'h2', 'h3', 'h4', 'h5', 'h6']
MARKDOWN_HEADING = re.compile(r'^(#{1,6})\s+(.+?)\s*#*\s*$')


# ============================================================================
# CONTENT HELPERS
# ============================================================================

def clean_content(content: str, max_chars: int = MAX_CONTENT_CHARS) -> str:
    """Normalize whitespace, drop boilerplate phrases and cap the length."""
    content = normalize_whitespace(content)
    for pattern in REMOVE_PATTERNS:
        content = pattern.sub('', content)
    content = re.sub(r'[ \t]{2,}', ' ', content)

    if len(content) > max_chars:
        content = content[:max_chars] + '...'
    return content.strip()


def extract_title_from_content(content: str) -> str:
    """First line of the content when it looks like a title, else 'Untitled'."""
    lines = [line.strip() for line in content.split('\n') if line.strip()]
    if lines and 10 < len(lines[0]) < 200:
        return lines[0]
    return 'Untitled'


def extract_keywords(content: str) -> List[str]:
    """Top 10 words appearing more than once."""
    return frequent_terms(content, limit=10, min_count=2)


def markdown_headings(markdown: str) -> List[Heading]:
    headings = []
    for line in markdown.splitlines():
        match = MARKDOWN_HEADING.match(line.strip())
        if match:
            headings.append(Heading(level=len(match.group(1)), text=match.group(2)))
    return headings


def validate_content(document: ScrapedDocument) -> bool:
    """Check if a scraped document looks like a real page."""
    if not document.body_text or len(document.body_text) < 50:
        logger.info(f"Content validation failed for {document.url}: content too short")
        return False

    if not document.title or len(document.title) < 2:
        logger.info(f"Content validation failed for {document.url}: title too short")
        return False

    lower_content = document.body_text.lower()
    lower_title = document.title.lower()
    for indicator in ERROR_INDICATORS:
        if indicator in lower_title or indicator in lower_content:
            logger.info(f"Content validation failed for {document.url}: found '{indicator}'")
            return False

    return True


# ============================================================================
# SCRAPER
# ============================================================================

class WebScraper(ContentScraper):
    """Scraper for downloading and sanitizing web pages."""

    def __init__(self, firecrawl_api_key: Optional[str] = None, timeout: int = TIMEOUT,
                 max_retries: int = MAX_RETRIES, retry_delay: float = 2.0,
                 max_content_chars: int = MAX_CONTENT_CHARS, user_agent: str = USER_AGENT,
                 cache: Optional[Cache] = None, session: Optional[requests.Session] = None):
        if firecrawl_api_key is None:
            firecrawl_api_key = first_env_var('FIRECRAWL_API_KEY')
        self.firecrawl_api_key = firecrawl_api_key
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.max_content_chars = max_content_chars
        self.cache = cache
        self.session = session or requests.Session()
        self.headers = {
            'User-Agent': user_agent,
            'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8',
            'Accept-Language': 'en-US,en;q=0.5',
        }
        self.chain = FallbackChain(self._strategies(), name='scraper')

    def _strategies(self) -> List[Strategy]:
        strategies = []
        if self.firecrawl_api_key:
            strategies.append(Strategy('firecrawl', self.scrape_with_firecrawl))
        strategies.append(Strategy('html', self._scrape_html_with_retries))
        return strategies

    def scrape(self, url: str) -> ScrapedDocument:
        if not is_valid_url(url):
            raise ScrapingError('Invalid URL format', url)

        cache_key = content_cache_key(url)
        if self.cache is not None:
            cached = self.cache.get(cache_key)
            if cached:
                try:
                    return ScrapedDocument.from_dict(cached)
                except (KeyError, TypeError) as e:
                    logger.warning(f"Ignoring malformed cached content for {url}: {e}")

        outcome = self.chain.run(url)
        if not outcome.success:
            status_code = getattr(outcome.error, 'status_code', None)
            raise ScrapingError(
                f"Failed to scrape content after {self.max_retries} attempts: {outcome.error}",
                url, status_code
            )

        document = outcome.value
        if not validate_content(document):
            raise ScrapingError("Scraped page has no usable content", url)

        logger.info(f"Scraped {url} via {outcome.strategy} ({document.word_count} words)")
        if self.cache is not None:
            self.cache.set(cache_key, document.to_dict())
        return document

    def scrape_with_firecrawl(self, url: str) -> ScrapedDocument:
        """Extract content through the Firecrawl API."""
        try:
            response = self.session.post(
                FIRECRAWL_API_URL,
                headers={
                    'Authorization': f'Bearer {self.firecrawl_api_key}',
                    'Content-Type': 'application/json',
                },
                json={
                    'url': url,
                    'formats': ['markdown', 'html'],
                    'onlyMainContent': True,
                    'includeTags': ['title', 'meta'],
                    'excludeTags': ['nav', 'footer', 'aside', 'script', 'style'],
                    'waitFor': 2000,
                },
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise ScrapingError(f"Firecrawl scraping failed: {e}", url) from e

        if not payload.get('success') or not payload.get('data'):
            reason = payload.get('error') or 'Failed to scrape content'
            raise ScrapingError(f"Firecrawl scraping failed: {reason}", url)

        data = payload['data']
        metadata = data.get('metadata') or {}
        content = data.get('markdown') or data.get('content') or ''
        return self._build_document(
            url,
            title=metadata.get('title', ''),
            raw_text=content,
            meta_description=metadata.get('description'),
            headings=markdown_headings(content),
            author=metadata.get('author'),
            publish_date=metadata.get('publishedTime'),
        )

    def _scrape_html_with_retries(self, url: str) -> ScrapedDocument:
        fetch = retry_on_failure(
            max_retries=self.max_retries, delay=self.retry_delay, exceptions=(ScrapingError,)
        )(self.scrape_with_html)
        return fetch(url)

    def scrape_with_html(self, url: str) -> ScrapedDocument:
        """Fetch raw HTML and parse it locally."""
        try:
            response = self.session.get(url, headers=self.headers, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            response = getattr(e, 'response', None)
            status_code = response.status_code if response is not None else None
            raise ScrapingError(f"Fallback scraping failed: {e}", url, status_code) from e

        return self.parse_html(url, response.text)

    def parse_html(self, url: str, html: str) -> ScrapedDocument:
        soup = BeautifulSoup(html, 'html.parser')

        title_tag = soup.find('title')
        title = sanitize_text(title_tag.get_text()) if title_tag else ''
        if not title:
            h1 = soup.find('h1')
            title = sanitize_text(h1.get_text()) if h1 else ''

        description = soup.find('meta', attrs={'name': 'description'}) or \
            soup.find('meta', attrs={'property': 'og:description'})
        author = soup.find('meta', attrs={'name': 'author'})
        published = soup.find('meta', attrs={'property': 'article:published_time'})

        # Remove unwanted elements
        for element in soup(UNWANTED_TAGS):
            element.decompose()

        headings = []
        for heading in soup.find_all(HEADING_TAGS):
            text = sanitize_text(heading.get_text())
            if text:
                headings.append(Heading(level=int(heading.name[1]), text=text))

        # Keep block boundaries as paragraph breaks for the chunker
        for block in soup.find_all(BLOCK_TAGS):
            block.insert_before('\n\n')
            block.insert_after('\n\n')

        return self._build_document(
            url,
            title=title,
            raw_text=soup.get_text(),
            meta_description=_meta_content(description),
            headings=headings,
            author=_meta_content(author),
            publish_date=_meta_content(published),
        )

    def _build_document(self, url: str, title: str, raw_text: str,
                        meta_description: Optional[str], headings: Sequence[Heading],
                        author: Optional[str] = None,
                        publish_date: Optional[str] = None) -> ScrapedDocument:
        content = clean_content(raw_text, self.max_content_chars)
        return ScrapedDocument(
            url=url,
            title=title or extract_title_from_content(content),
            body_text=content,
            meta_description=meta_description or None,
            headings=tuple(headings),
            word_count=len(content.split()),
            author=author,
            publish_date=publish_date,
            keywords=tuple(extract_keywords(content)),
        )


def _meta_content(tag) -> Optional[str]:
    if tag is None:
        return None
    content = sanitize_text(tag.get('content', ''))
    return content or None


def scrape_multiple(scraper: ContentScraper, urls: Sequence[str], concurrency: int = 3,
                    delay: float = 1.0,
                    sleep: Callable[[float], None] = time.sleep) -> List[Optional[ScrapedDocument]]:
    """Scrape URLs in concurrent batches, keeping input order.

    Failed URLs yield None in their position.
    """
    errors: List[str] = []

    def scrape_one(url: str) -> Optional[ScrapedDocument]:
        try:
            return scraper.scrape(url)
        except ProviderError as e:
            logger.error(f"Failed to scrape {url}: {e}")
            errors.append(f"{url}: {e}")
            return None

    results: List[Optional[ScrapedDocument]] = []
    batches = chunk_list(list(urls), concurrency)
    for batch_index, batch in enumerate(batches):
        with ThreadPoolExecutor(max_workers=len(batch)) as executor:
            results.extend(executor.map(scrape_one, batch))
        if batch_index < len(batches) - 1:
            sleep(delay)

    if errors:
        logger.warning(f"Scraping completed with {len(errors)} errors")
    return results
