"""
Dependency injection container for the topic coverage system.
Providers are resolved by interface so tests can swap in fakes.
"""
from typing import Dict, Any, Type, TypeVar, Callable, Optional, Mapping
import inspect
import os

T = TypeVar('T')

OPENAI_COMPLETION = 'completion.openai'
GEMINI_COMPLETION = 'completion.gemini'


class DIContainer:
    """Simple dependency injection container."""

    def __init__(self):
        self._services: Dict[Any, Any] = {}
        self._singletons: Dict[Any, Any] = {}
        self._factories: Dict[Any, Callable] = {}

    def register_singleton(self, interface: Any, implementation: Type[T]) -> None:
        """Register a class built once on first resolve."""
        self._services[interface] = implementation
        self._singletons[interface] = None

    def register_factory(self, interface: Any, factory: Callable[[], T],
                         singleton: bool = False) -> None:
        """Register a factory; with singleton, its first result is reused."""
        self._factories[interface] = factory
        if singleton:
            self._singletons[interface] = None
        else:
            self._singletons.pop(interface, None)

    def register_instance(self, interface: Any, instance: T) -> None:
        """Register a specific instance. Takes precedence over factories."""
        self._singletons[interface] = instance

    def is_registered(self, interface: Any) -> bool:
        return (
            self._singletons.get(interface) is not None
            or interface in self._factories
            or interface in self._services
        )

    def resolve(self, interface: Any) -> Any:
        """Resolve a service dependency."""
        # Check for registered instance first
        if self._singletons.get(interface) is not None:
            return self._singletons[interface]

        if interface in self._factories:
            instance = self._factories[interface]()
            if interface in self._singletons and instance is not None:
                self._singletons[interface] = instance
            return instance

        if interface in self._services:
            instance = self._create_instance(self._services[interface])
            if interface in self._singletons:
                self._singletons[interface] = instance
            return instance

        raise ValueError(f"Service {interface} not registered")

    def _create_instance(self, implementation: Type[T]) -> T:
        """Create instance, resolving annotated constructor parameters."""
        signature = inspect.signature(implementation.__init__)
        kwargs = {}
        for name, param in signature.parameters.items():
            if name == 'self' or param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if param.annotation is not inspect.Parameter.empty and self.is_registered(param.annotation):
                kwargs[name] = self.resolve(param.annotation)
            elif param.default is inspect.Parameter.empty:
                raise ValueError(f"Cannot resolve dependency {param.annotation} for {implementation}")
        return implementation(**kwargs)


class ServiceRegistry:
    """Builds every provider from the nested configuration and API keys."""

    def __init__(self, environ: Optional[Mapping[str, str]] = None):
        self.container = DIContainer()
        self.environ = os.environ if environ is None else environ
        self.config: Dict[str, Any] = {}
        self._configured = False

    def _env(self, *keys: str) -> Optional[str]:
        for key in keys:
            value = self.environ.get(key)
            if value:
                return value
        return None

    def configure(self, config: Dict[str, Any]) -> None:
        """Register implementations for the given configuration (first call wins)."""
        if self._configured:
            return
        self.config = config

        self._register_default_services()
        self._register_providers()
        self._register_application()

        self._configured = True

    def _register_default_services(self) -> None:
        from .interfaces import Cache, Logger
        from ..infrastructure.cache import create_cache
        from ..infrastructure.logging import create_logger

        log_format = self.config.get('logging', {}).get('format', 'standard')
        self.container.register_factory(Logger, lambda: create_logger(log_format), singleton=True)
        self.container.register_factory(Cache, lambda: create_cache(self.config), singleton=True)

    def _register_providers(self) -> None:
        from .interfaces import (
            Cache, CompetitorDiscovery, ContentScraper, EmbeddingProvider
        )
        from ..crawl import USER_AGENT, WebScraper
        from ..discovery import SerpAPIDiscovery
        from ..embed import CachedEmbeddingProvider, create_embedding_provider
        from ..llm import GeminiCompletionProvider, OpenAICompletionProvider

        embedding = self.config.get('embedding', {})
        llm = self.config.get('llm', {})
        scraping = self.config.get('scraping', {})

        def build_embedding_provider():
            provider = create_embedding_provider(
                embedding.get('provider', 'openai'),
                model=embedding.get('model'),
                max_input_chars=embedding.get('max_input_chars', 8000),
            )
            return CachedEmbeddingProvider(provider, self.container.resolve(Cache))

        def build_scraper():
            return WebScraper(
                firecrawl_api_key=self._env('FIRECRAWL_API_KEY') or '',
                timeout=scraping.get('timeout', 30),
                max_retries=scraping.get('max_retries', 3),
                max_content_chars=scraping.get('max_content_chars', 50000),
                user_agent=scraping.get('user_agent') or USER_AGENT,
                cache=self.container.resolve(Cache),
            )

        def build_discovery():
            api_key = self._env('SERPAPI_KEY')
            return SerpAPIDiscovery(api_key=api_key) if api_key else None

        def build_openai():
            api_key = self._env('OPENAI_API_KEY')
            if not api_key:
                return None
            return OpenAICompletionProvider(api_key=api_key, model=llm.get('openai_model', 'gpt-4o-mini'))

        def build_gemini():
            api_key = self._env('GOOGLE_API_KEY', 'GEMINI_API_KEY')
            if not api_key:
                return None
            return GeminiCompletionProvider(api_key=api_key, model=llm.get('gemini_model', 'gemini-1.5-flash'))

        self.container.register_factory(EmbeddingProvider, build_embedding_provider, singleton=True)
        self.container.register_factory(ContentScraper, build_scraper, singleton=True)
        self.container.register_factory(CompetitorDiscovery, build_discovery, singleton=True)
        self.container.register_factory(OPENAI_COMPLETION, build_openai, singleton=True)
        self.container.register_factory(GEMINI_COMPLETION, build_gemini, singleton=True)

    def completion_provider(self, name: str):
        """Completion provider by name ('openai' or 'gemini'), None without an API key."""
        return self.container.resolve(f"completion.{name}")

    def _register_application(self) -> None:
        from .interfaces import Cache, CompetitorDiscovery, ContentScraper, EmbeddingProvider, Logger
        from ..application.pipeline import AnalysisService, ContentAnalyzer
        from ..chunk import ContentChunker
        from ..entities import EntityExtractor
        from ..gaps import CoverageGapIdentifier
        from ..query_generator import QueryGenerator
        from ..recommend import OptimizationRecommender
        from ..score import ContentSimilarityAnalyzer
        from ..topic import TopicDetector

        analysis = self.config.get('analysis', {})
        llm = self.config.get('llm', {})
        scraping = self.config.get('scraping', {})

        def build_analyzer():
            logger = self.container.resolve(Logger)
            similarity = ContentSimilarityAnalyzer(
                self.container.resolve(EmbeddingProvider),
                chunker=ContentChunker(analysis.get('max_chunk_size', 1000),
                                       analysis.get('min_chunk_size', 50)),
                threshold=analysis.get('similarity_threshold', 0.7),
                batch_size=analysis.get('query_batch_size', 5),
                batch_delay=analysis.get('query_batch_delay', 0.5),
            )
            topic_llm = self.completion_provider(llm.get('topic_provider', 'openai'))
            query_providers = llm.get('query_providers', ['gemini', 'openai'])
            openai = self.completion_provider('openai')
            return ContentAnalyzer(
                similarity,
                logger,
                entity_extractor=EntityExtractor(openai),
                topic_detector=TopicDetector(topic_llm),
                query_generator=QueryGenerator(
                    gemini=self.completion_provider('gemini') if 'gemini' in query_providers else None,
                    openai=openai if 'openai' in query_providers else None,
                ),
                gap_identifier=CoverageGapIdentifier(gap_threshold=analysis.get('gap_threshold', 10)),
                recommender=OptimizationRecommender(openai) if openai else None,
                threshold=analysis.get('similarity_threshold', 0.7),
                min_queries=analysis.get('min_queries', 10),
                target_query_count=analysis.get('target_query_count', 20),
            )

        def build_service():
            return AnalysisService(
                self.container.resolve(ContentAnalyzer),
                self.container.resolve(ContentScraper),
                self.container.resolve(Logger),
                cache=self.container.resolve(Cache),
                discovery=self.container.resolve(CompetitorDiscovery),
                scrape_concurrency=scraping.get('concurrency', 3),
                scrape_delay=scraping.get('batch_delay', 1.0),
                cache_ttl=self.config.get('cache', {}).get('ttl', 86400),
            )

        self.container.register_factory(ContentAnalyzer, build_analyzer, singleton=True)
        self.container.register_factory(AnalysisService, build_service, singleton=True)

    def get_service(self, interface: Any) -> Any:
        """Get a service instance."""
        return self.container.resolve(interface)


# Global service registry instance
service_registry = ServiceRegistry()
