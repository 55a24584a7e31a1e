"""
Embedding module: OpenAI and Gemini embedding providers plus a caching wrapper.

Providers do not retry or cache; every failure surfaces as EmbeddingError so
the caller decides whether to skip a chunk or degrade a query.
"""
from typing import Any, Callable, Optional

import google.generativeai as genai
from openai import OpenAI

from .core.errors import EmbeddingError
from .core.interfaces import Cache, EmbeddingProvider
from .core.models import EmbeddingVector
from .infrastructure.cache import embedding_cache_key
from .utils import first_env_var, logger, truncate

DEFAULT_OPENAI_EMBEDDING_MODEL = "text-embedding-3-small"
DEFAULT_GEMINI_EMBEDDING_MODEL = "models/embedding-001"
MAX_INPUT_CHARS = 8000


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """Generate embeddings using the OpenAI embeddings endpoint."""

    def __init__(self, api_key: Optional[str] = None,
                 model: str = DEFAULT_OPENAI_EMBEDDING_MODEL,
                 max_input_chars: int = MAX_INPUT_CHARS,
                 client: Optional[OpenAI] = None):
        self.model = model
        self.max_input_chars = max_input_chars
        if client is None:
            api_key = api_key or first_env_var("OPENAI_API_KEY")
            if not api_key:
                raise ValueError("OPENAI_API_KEY environment variable not set")
            client = OpenAI(api_key=api_key)
        self.client = client

    def embed(self, text: str, model: Optional[str] = None) -> EmbeddingVector:
        model = model or self.model
        # Truncate text if too long
        text = truncate(text, self.max_input_chars)

        try:
            response = self.client.embeddings.create(model=model, input=text)
            values = response.data[0].embedding
        except Exception as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

        if not values:
            raise EmbeddingError("No embedding data received from OpenAI")
        try:
            return EmbeddingVector(values=values, model=model, source_text=text)
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Malformed embedding from OpenAI: {e}") from e


class GeminiEmbeddingProvider(EmbeddingProvider):
    """Generate embeddings using Google Gemini API."""

    def __init__(self, api_key: Optional[str] = None,
                 model: str = DEFAULT_GEMINI_EMBEDDING_MODEL,
                 max_input_chars: int = MAX_INPUT_CHARS,
                 embed_fn: Optional[Callable[..., Any]] = None):
        self.model = model
        self.max_input_chars = max_input_chars
        if embed_fn is None:
            api_key = api_key or first_env_var("GOOGLE_API_KEY", "GEMINI_API_KEY")
            if not api_key:
                raise ValueError("GOOGLE_API_KEY environment variable not set")
            genai.configure(api_key=api_key)
            embed_fn = genai.embed_content
        self.embed_fn = embed_fn

    def embed(self, text: str, model: Optional[str] = None) -> EmbeddingVector:
        model = model or self.model
        text = truncate(text, self.max_input_chars)

        try:
            result = self.embed_fn(model=model, content=text)
            values = result['embedding']
        except Exception as e:
            raise EmbeddingError(f"Failed to generate embedding: {e}") from e

        if not values:
            raise EmbeddingError("No embedding data received from Gemini")
        try:
            return EmbeddingVector(values=values, model=model, source_text=text)
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Malformed embedding from Gemini: {e}") from e


class CachedEmbeddingProvider(EmbeddingProvider):
    """Read-through cache in front of another embedding provider."""

    def __init__(self, provider: EmbeddingProvider, cache: Cache, ttl: Optional[int] = None):
        self.provider = provider
        self.cache = cache
        self.ttl = ttl

    @property
    def model(self) -> str:
        return getattr(self.provider, 'model', '')

    def embed(self, text: str, model: Optional[str] = None) -> EmbeddingVector:
        model = model or self.model
        key = embedding_cache_key(text, model)

        cached = self.cache.get(key)
        if isinstance(cached, dict) and cached.get('embedding'):
            try:
                return EmbeddingVector(values=cached['embedding'], model=model, source_text=text)
            except (TypeError, ValueError) as e:
                logger.warning(f"Ignoring malformed cached embedding {key}: {e}")

        vector = self.provider.embed(text, model)
        self.cache.set(key, {'embedding': list(vector.values), 'model': model}, self.ttl)
        return vector


def create_embedding_provider(provider: str = "openai", model: Optional[str] = None,
                              max_input_chars: int = MAX_INPUT_CHARS) -> EmbeddingProvider:
    """Build an embedding provider by name ('openai' or 'gemini')."""
    if provider == "gemini":
        return GeminiEmbeddingProvider(model=model or DEFAULT_GEMINI_EMBEDDING_MODEL,
                                       max_input_chars=max_input_chars)
    if provider == "openai":
        return OpenAIEmbeddingProvider(model=model or DEFAULT_OPENAI_EMBEDDING_MODEL,
                                       max_input_chars=max_input_chars)
    raise ValueError(f"Unsupported embedding provider: {provider}")
