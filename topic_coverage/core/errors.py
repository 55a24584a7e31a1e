"""
Error taxonomy for the topic coverage system.

Provider failures are isolated to the smallest unit of work (a chunk, a query,
a competitor) by the callers; only AnalysisError reaches the user.
"""
from typing import Optional


class AnalysisError(Exception):
    """The single user-facing failure of an analysis run."""

    def __init__(self, message: str, code: str = "ANALYSIS_ERROR", status_code: int = 500):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code

    def __str__(self) -> str:
        return self.message


class ProviderError(Exception):
    """An external collaborator (scraper, embedding model, LLM, search) failed."""


class ScrapingError(ProviderError):
    """A page could not be scraped."""

    def __init__(self, message: str, url: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.url = url
        self.status_code = status_code


class EmbeddingError(ProviderError):
    """An embedding could not be generated."""


class CompletionError(ProviderError):
    """An LLM completion request failed."""


class DiscoveryError(ProviderError):
    """Competitor discovery through search failed."""


class DimensionMismatchError(ValueError):
    """Two embedding vectors of different lengths were compared."""

    def __init__(self, left: int, right: int):
        super().__init__(f"Vectors must have the same length (got {left} and {right})")
        self.left = left
        self.right = right


class ValidationError(ValueError):
    """An analysis request failed validation."""
