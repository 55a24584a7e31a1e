"""
Utility functions for the topic coverage pipeline.
"""
import os
import re
import time
import hashlib
import logging
from collections import Counter
from typing import List, Iterable, Optional, TypeVar
from functools import wraps
from urllib.parse import urlparse
from dotenv import load_dotenv
from sklearn.feature_extraction.text import CountVectorizer

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

T = TypeVar('T')

HTML_ENTITIES = {
    "&nbsp;": " ",
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
}


def retry_on_failure(max_retries: int = 3, delay: float = 1.0,
                     exceptions: tuple = (Exception,)):
    """Decorator to retry functions on failure."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if attempt == max_retries - 1:
                        logger.error(f"Failed after {max_retries} attempts: {e}")
                        raise
                    logger.warning(f"Attempt {attempt + 1} failed: {e}. Retrying...")
                    time.sleep(delay * (2 ** attempt))  # Exponential backoff
            return None
        return wrapper
    return decorator


def sanitize_text(text: str) -> str:
    """Clean and sanitize text content."""
    if not text:
        return ""

    # Remove extra whitespace
    text = " ".join(text.split())

    # Remove common HTML artifacts
    for entity, replacement in HTML_ENTITIES.items():
        text = text.replace(entity, replacement)

    return text.strip()


def normalize_whitespace(text: str) -> str:
    """Collapse runs of spaces inside lines while keeping blank-line paragraph breaks."""
    if not text:
        return ""

    paragraphs = re.split(r'\n\s*\n', text)
    cleaned = [" ".join(p.split()) for p in paragraphs]
    return "\n\n".join(p for p in cleaned if p)


def bare_domain(url: str) -> str:
    """Hostname without a leading www., or the input itself when it is not a URL."""
    try:
        hostname = urlparse(url).hostname
    except ValueError:
        return url
    if not hostname:
        return url
    return re.sub(r'^www\.', '', hostname)


def is_valid_url(url: str) -> bool:
    """Check if URL is a valid http(s) URL."""
    try:
        result = urlparse(url)
        return result.scheme in ('http', 'https') and bool(result.netloc)
    except (ValueError, AttributeError):
        return False


def first_env_var(*keys: str) -> Optional[str]:
    """Return the first non-empty environment variable among keys."""
    for key in keys:
        value = os.getenv(key)
        if value:
            return value
    return None


def chunk_list(lst: List[T], chunk_size: int) -> List[List[T]]:
    """Split list into chunks of specified size."""
    return [lst[i:i + chunk_size] for i in range(0, len(lst), chunk_size)]


def sha256_hex(text: str) -> str:
    """Hex SHA-256 digest of a string."""
    return hashlib.sha256(text.encode('utf-8')).hexdigest()


def truncate(text: str, max_chars: int) -> str:
    """Truncate text to at most max_chars characters."""
    if len(text) <= max_chars:
        return text
    return text[:max_chars]


def unique(items: Iterable[T]) -> List[T]:
    """Order-preserving de-duplication."""
    seen = set()
    result = []
    for item in items:
        if item not in seen:
            seen.add(item)
            result.append(item)
    return result


def frequent_terms(text: str, limit: int = 10, min_count: int = 1) -> List[str]:
    """Most frequent lower-cased words of four or more characters.

    Ties keep first-occurrence order.
    """
    if not text or not text.strip():
        return []

    analyzer = CountVectorizer(token_pattern=r"(?u)\b\w{4,}\b").build_analyzer()
    counts = Counter(analyzer(text))
    return [term for term, count in counts.most_common() if count >= min_count][:limit]
