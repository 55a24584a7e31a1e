"""
Unit tests for the dependency injection container and service registry.
"""
import pytest

from topic_coverage.application.pipeline import AnalysisService, ContentAnalyzer
from topic_coverage.core.container import DIContainer, ServiceRegistry
from topic_coverage.core.interfaces import (
    Cache, CompetitorDiscovery, ContentScraper, EmbeddingProvider, Logger
)
from topic_coverage.crawl import WebScraper
from topic_coverage.discovery import SerpAPIDiscovery
from topic_coverage.infrastructure.cache import MemoryCache
from topic_coverage.infrastructure.config import load_configuration
from topic_coverage.infrastructure.logging import StandardLogger, StructuredLogger
from topic_coverage.llm import OpenAICompletionProvider
from tests.fakes import KeywordEmbeddingProvider


class Repository:
    pass


class Service:
    def __init__(self, repository: Repository, retries: int = 3):
        self.repository = repository
        self.retries = retries


class Unresolvable:
    def __init__(self, count: int):
        self.count = count


class TestDIContainer:
    """Test DIContainer class."""

    def test_singleton_autowiring(self):
        container = DIContainer()
        container.register_singleton(Repository, Repository)
        container.register_singleton(Service, Service)

        service = container.resolve(Service)

        assert service is container.resolve(Service)
        assert service.repository is container.resolve(Repository)
        assert service.retries == 3

    def test_unresolvable_dependency(self):
        container = DIContainer()
        container.register_singleton(Unresolvable, Unresolvable)
        with pytest.raises(ValueError):
            container.resolve(Unresolvable)

    def test_factories(self):
        container = DIContainer()
        container.register_factory('fresh', lambda: object())
        container.register_factory('shared', lambda: object(), singleton=True)

        assert container.resolve('fresh') is not container.resolve('fresh')
        assert container.resolve('shared') is container.resolve('shared')

    def test_none_from_factory_not_cached(self):
        calls = []

        def factory():
            calls.append(1)
            return None

        container = DIContainer()
        container.register_factory('optional', factory, singleton=True)

        assert container.resolve('optional') is None
        assert container.resolve('optional') is None
        assert len(calls) == 2

    def test_instance_takes_precedence(self):
        container = DIContainer()
        container.register_factory('thing', lambda: 'from factory', singleton=True)
        container.register_instance('thing', 'instance')
        assert container.resolve('thing') == 'instance'

    def test_unregistered(self):
        with pytest.raises(ValueError):
            DIContainer().resolve('missing')
        assert not DIContainer().is_registered('missing')


class TestServiceRegistry:
    """Test ServiceRegistry class."""

    def configured(self, environ=None):
        registry = ServiceRegistry(environ=environ or {})
        registry.configure(load_configuration(environ={}))
        return registry

    def test_defaults_without_keys(self):
        registry = self.configured()

        assert registry.completion_provider('openai') is None
        assert registry.completion_provider('gemini') is None
        assert registry.get_service(CompetitorDiscovery) is None
        assert isinstance(registry.get_service(Logger), StandardLogger)

        cache = registry.get_service(Cache)
        assert isinstance(cache, MemoryCache)
        assert registry.get_service(Cache) is cache

    def test_structured_logging(self):
        registry = ServiceRegistry(environ={})
        registry.configure(load_configuration(environ={"LOG_FORMAT": "structured"}))
        assert isinstance(registry.get_service(Logger), StructuredLogger)

    def test_scraper(self):
        scraper = self.configured().get_service(ContentScraper)
        assert isinstance(scraper, WebScraper)
        assert scraper.chain.strategy_names == ['html']

    def test_keys_enable_providers(self):
        registry = self.configured({'OPENAI_API_KEY': 'sk-test', 'SERPAPI_KEY': 'serp-test'})

        assert isinstance(registry.completion_provider('openai'), OpenAICompletionProvider)
        assert isinstance(registry.get_service(CompetitorDiscovery), SerpAPIDiscovery)

    def test_first_configuration_wins(self):
        registry = self.configured()
        config = registry.config
        registry.configure({'cache': {'backend': 'redis'}})
        assert registry.config is config

    def test_application_services(self):
        registry = self.configured()
        registry.container.register_instance(EmbeddingProvider, KeywordEmbeddingProvider())

        analyzer = registry.get_service(ContentAnalyzer)
        service = registry.get_service(AnalysisService)

        assert isinstance(analyzer, ContentAnalyzer)
        assert service.analyzer is analyzer
        assert service.discovery is None
        assert [step.get_step_name() for step in analyzer.steps] == [
            'entities', 'topic', 'queries', 'target', 'competitors', 'gaps', 'recommendations'
        ]
