"""
Competitor discovery through Google search results (SerpAPI).
"""
from typing import List, Optional

import requests

from .core.errors import DiscoveryError
from .core.interfaces import CompetitorDiscovery
from .utils import first_env_var, is_valid_url, logger

SERPAPI_URL = 'https://serpapi.com/search.json'


class SerpAPIDiscovery(CompetitorDiscovery):
    """Find competitor pages as the organic results for a query."""

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None):
        api_key = api_key or first_env_var('SERPAPI_KEY')
        if not api_key:
            raise ValueError("SERPAPI_KEY environment variable not set")
        self.api_key = api_key
        self.session = session or requests.Session()

    def _search(self, query: str, num: int) -> dict:
        try:
            response = self.session.get(
                SERPAPI_URL,
                params={'engine': 'google', 'q': query, 'api_key': self.api_key, 'num': num},
                headers={'Accept': 'application/json'},
            )
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise DiscoveryError(f"Failed to discover competitors: {e}") from e

        if data.get('error'):
            raise DiscoveryError(f"SerpAPI error: {data['error']}")
        return data

    def discover(self, query: str, result_count: int = 5) -> List[str]:
        data = self._search(query, result_count)
        organic = data.get('organic_results') or []
        if not organic:
            logger.warning(f"No organic results found for '{query}'")
            return []

        urls = [result.get('link') for result in organic]
        return [url for url in urls if url and is_valid_url(url)][:result_count]
