"""
Core interfaces for the topic coverage system.
Each external collaborator sits behind a small, role-specific interface so the
analysis core can run against in-memory fakes.
"""
from abc import ABC, abstractmethod
from typing import List, Any, Optional, Protocol

from .models import ScrapedDocument, EmbeddingVector


# ============================================================================
# CONTENT INTERFACES
# ============================================================================

class ContentScraper(ABC):
    """Abstract base for page scrapers."""

    @abstractmethod
    def scrape(self, url: str) -> ScrapedDocument:
        """Fetch and parse a page. Raises ScrapingError carrying the URL."""
        pass


# ============================================================================
# MODEL INTERFACES
# ============================================================================

class EmbeddingProvider(ABC):
    """Abstract base for embedding generation services."""

    @abstractmethod
    def embed(self, text: str, model: Optional[str] = None) -> EmbeddingVector:
        """Generate one embedding vector. Raises EmbeddingError on any failure."""
        pass


class CompletionProvider(ABC):
    """Abstract base for LLM text completion services."""

    @abstractmethod
    def complete(self, prompt: str, **params: Any) -> str:
        """Return the completion text. Raises CompletionError on any failure."""
        pass


# ============================================================================
# SEARCH INTERFACES
# ============================================================================

class CompetitorDiscovery(ABC):
    """Abstract base for search-based competitor discovery."""

    @abstractmethod
    def discover(self, query: str, result_count: int = 5) -> List[str]:
        """Return up to result_count organic result URLs. Raises DiscoveryError."""
        pass


# ============================================================================
# CACHE INTERFACES
# ============================================================================

class Cache(ABC):
    """Abstract base for advisory key-value caches.

    Every read path must behave correctly with a permanently empty cache, so
    implementations log and swallow their own backend failures.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[Any]:
        """Return the cached value or None."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any, ttl: Optional[int] = None) -> None:
        """Store a JSON-serializable value."""
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove a key."""
        pass

    @abstractmethod
    def clear(self) -> None:
        """Remove every key."""
        pass

    def start(self) -> None:
        """Start background maintenance, if any."""

    def stop(self) -> None:
        """Stop background maintenance, if any."""


# ============================================================================
# PIPELINE INTERFACES
# ============================================================================

class PipelineStep(ABC):
    """Abstract base for pipeline step operations."""

    @abstractmethod
    def execute(self, input_data: Any) -> Any:
        """Execute the pipeline step."""
        pass

    @abstractmethod
    def get_step_name(self) -> str:
        """Get the name of the pipeline step."""
        pass


class Pipeline(ABC):
    """Abstract base for data processing pipelines."""

    @abstractmethod
    def add_step(self, step: PipelineStep) -> None:
        """Add a step to the pipeline."""
        pass

    @abstractmethod
    def execute(self, input_data: Any) -> Any:
        """Execute the entire pipeline."""
        pass


# ============================================================================
# CONFIGURATION INTERFACES
# ============================================================================

class ConfigurationProvider(ABC):
    """Abstract base for configuration management."""

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value."""
        pass

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Set configuration value."""
        pass


# ============================================================================
# LOGGING INTERFACES
# ============================================================================

class Logger(Protocol):
    """Interface for logging operations."""

    def info(self, message: str) -> None:
        """Log info message."""
        ...

    def warning(self, message: str) -> None:
        """Log warning message."""
        ...

    def error(self, message: str) -> None:
        """Log error message."""
        ...

    def debug(self, message: str) -> None:
        """Log debug message."""
        ...
