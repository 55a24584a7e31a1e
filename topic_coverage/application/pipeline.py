"""
Pipeline service for orchestrating a topic coverage analysis.

ContentAnalyzer runs the analysis steps over already scraped documents;
AnalysisService adds the outer flow (validation, caching, scraping,
competitor discovery).
"""
import time
import uuid
from typing import Any, Callable, Dict, List, Optional

from ..aggregate import calculate_category_scores, generate_radar_data, overall_score
from ..core.errors import AnalysisError, EmbeddingError, ProviderError, ValidationError
from ..core.interfaces import Cache, CompetitorDiscovery, ContentScraper, Logger, Pipeline, PipelineStep
from ..core.models import (
    AnalysisContext, AnalysisRequest, AnalysisResult, CompetitorResult, ContentElements,
    ScrapedDocument
)
from ..crawl import scrape_multiple
from ..entities import EntityExtractor
from ..gaps import CoverageGapIdentifier, generate_overall_recommendations
from ..infrastructure.cache import analysis_cache_key
from ..query_generator import QueryGenerator, filter_queries_by_topic
from ..recommend import OptimizationRecommender
from ..score import ContentSimilarityAnalyzer
from ..topic import TopicDetector, extract_primary_topic_safely
from ..utils import unique

MAX_TOP_QUERIES = 10


def new_analysis_id() -> str:
    return f"analysis_{int(time.time() * 1000)}_{uuid.uuid4().hex[:9]}"


class EntityStep(PipelineStep):
    """Pipeline step for semantic entity extraction."""

    def __init__(self, extractor: EntityExtractor, logger: Logger):
        self.extractor = extractor
        self.logger = logger

    def execute(self, context: AnalysisContext) -> AnalysisContext:
        context.entities = self.extractor.extract(context.target.body_text, context.target.title)
        self.logger.info(f"Extracted {len(context.entities)} entities from target")
        return context

    def get_step_name(self) -> str:
        return "entities"


class TopicStep(PipelineStep):
    """Pipeline step for primary topic detection."""

    def __init__(self, detector: TopicDetector, logger: Logger):
        self.detector = detector
        self.logger = logger

    def execute(self, context: AnalysisContext) -> AnalysisContext:
        elements = ContentElements.from_document(context.target, context.entities)
        context.primary_topic = extract_primary_topic_safely(elements, self.detector)
        self.logger.info(
            f"Primary topic: {context.primary_topic.entity} "
            f"({context.primary_topic.entity_type.value}, {context.primary_topic.confidence:.2f})"
        )
        return context

    def get_step_name(self) -> str:
        return "topic"


class QueryStep(PipelineStep):
    """Pipeline step that tops up and orders the query list."""

    def __init__(self, generator: Optional[QueryGenerator], logger: Logger,
                 min_queries: int = 10, target_count: int = 20):
        self.generator = generator
        self.logger = logger
        self.min_queries = min_queries
        self.target_count = target_count

    def execute(self, context: AnalysisContext) -> AnalysisContext:
        queries = unique(q.strip() for q in context.queries if q and q.strip())

        generate = context.config.get('generate_queries', True)
        if generate and self.generator is not None and len(queries) < self.min_queries:
            generated = self.generator.generate(context.target.body_text,
                                                self.target_count - len(queries))
            queries = unique(queries + [q.strip() for q in generated if q and q.strip()])
            self.logger.info(f"Query list topped up to {len(queries)} queries")

        context.queries = filter_queries_by_topic(queries, context.primary_topic)
        return context

    def get_step_name(self) -> str:
        return "queries"


class TargetStep(PipelineStep):
    """Pipeline step scoring the target document."""

    def __init__(self, similarity: ContentSimilarityAnalyzer, logger: Logger,
                 threshold: float = 0.7):
        self.similarity = similarity
        self.logger = logger
        self.threshold = threshold

    def execute(self, context: AnalysisContext) -> AnalysisContext:
        try:
            matches = self.similarity.analyze(context.target.body_text, context.queries,
                                              self.threshold, require_embeddings=True)
        except EmbeddingError as e:
            raise AnalysisError(f"Failed to analyze target content: {e}", "EMBEDDING_ERROR") from e

        scores = calculate_category_scores(matches)
        if not scores:
            raise AnalysisError("No content categories could be scored for the target page",
                                "NO_CATEGORIES", 422)

        context.target_matches = matches
        context.target_scores = scores
        context.target_score = overall_score(scores)
        self.logger.info(f"Target score: {context.target_score} across {len(scores)} categories")
        return context

    def get_step_name(self) -> str:
        return "target"


class CompetitorStep(PipelineStep):
    """Pipeline step scoring each competitor independently."""

    def __init__(self, similarity: ContentSimilarityAnalyzer, logger: Logger,
                 threshold: float = 0.7):
        self.similarity = similarity
        self.logger = logger
        self.threshold = threshold

    def execute(self, context: AnalysisContext) -> AnalysisContext:
        for competitor in context.competitors:
            try:
                result = self.analyze_competitor(competitor, context.queries)
            except (ProviderError, AnalysisError) as e:
                self.logger.error(f"Error analyzing competitor {competitor.url}: {e}")
                continue
            if result is None:
                self.logger.warning(f"Competitor {competitor.url} produced no categories, skipping")
                continue
            context.add_competitor_result(result)

        self.logger.info(
            f"Analyzed {len(context.competitor_results)}/{len(context.competitors)} competitors"
        )
        return context

    def analyze_competitor(self, competitor: ScrapedDocument,
                           queries: List[str]) -> Optional[CompetitorResult]:
        matches = self.similarity.analyze(competitor.body_text, queries,
                                          self.threshold, require_embeddings=True)
        scores = calculate_category_scores(matches)
        if not scores:
            return None
        return CompetitorResult(
            url=competitor.url,
            title=competitor.title,
            overall_score=overall_score(scores),
            category_scores=scores,
            top_queries=[m for m in matches if m.matched][:MAX_TOP_QUERIES],
        )

    def get_step_name(self) -> str:
        return "competitors"


class GapStep(PipelineStep):
    """Pipeline step comparing target and competitors."""

    def __init__(self, identifier: CoverageGapIdentifier, logger: Logger):
        self.identifier = identifier
        self.logger = logger

    def execute(self, context: AnalysisContext) -> AnalysisContext:
        context.radar_data = generate_radar_data(context.target_scores, context.competitor_results)
        context.coverage_gaps = self.identifier.identify(
            context.target_scores, context.competitor_results,
            context.target_matches, context.primary_topic,
        )
        self.logger.info(f"Identified {len(context.coverage_gaps)} coverage gaps")
        return context

    def get_step_name(self) -> str:
        return "gaps"


class RecommendationStep(PipelineStep):
    """Pipeline step for report recommendations."""

    def __init__(self, recommender: Optional[OptimizationRecommender], logger: Logger):
        self.recommender = recommender
        self.logger = logger

    def execute(self, context: AnalysisContext) -> AnalysisContext:
        context.recommendations = generate_overall_recommendations(
            context.coverage_gaps, context.target_scores, context.queries
        )
        if self.recommender is not None:
            target = context.target
            context.optimization_recommendations = self.recommender.recommend(
                context.entities, target.body_text, target.title, target.url
            )
        return context

    def get_step_name(self) -> str:
        return "recommendations"


class ContentAnalyzer(Pipeline):
    """Analysis pipeline over scraped target and competitor documents."""

    def __init__(self, similarity: ContentSimilarityAnalyzer, logger: Logger,
                 entity_extractor: Optional[EntityExtractor] = None,
                 topic_detector: Optional[TopicDetector] = None,
                 query_generator: Optional[QueryGenerator] = None,
                 gap_identifier: Optional[CoverageGapIdentifier] = None,
                 recommender: Optional[OptimizationRecommender] = None,
                 threshold: float = 0.7, min_queries: int = 10,
                 target_query_count: int = 20):
        self.logger = logger
        self.threshold = threshold
        self.gap_identifier = gap_identifier or CoverageGapIdentifier()
        self.steps: List[PipelineStep] = []

        self.add_step(EntityStep(entity_extractor or EntityExtractor(), logger))
        self.add_step(TopicStep(topic_detector or TopicDetector(), logger))
        self.add_step(QueryStep(query_generator, logger, min_queries, target_query_count))
        self.add_step(TargetStep(similarity, logger, threshold))
        self.add_step(CompetitorStep(similarity, logger, threshold))
        self.add_step(GapStep(self.gap_identifier, logger))
        self.add_step(RecommendationStep(recommender, logger))

    def add_step(self, step: PipelineStep) -> None:
        """Add a step to the pipeline."""
        self.steps.append(step)

    def execute(self, context: AnalysisContext) -> AnalysisContext:
        """Execute the entire pipeline."""
        self.logger.info(f"Starting analysis of {context.target.url}")
        start_time = time.time()

        try:
            for step in self.steps:
                self.logger.debug(f"Executing step: {step.get_step_name()}")
                context = step.execute(context)
        except Exception as e:
            self.logger.error(f"Pipeline failed: {e}")
            raise

        self.logger.info(f"Pipeline completed in {time.time() - start_time:.2f} seconds")
        return context

    def analyze(self, target: ScrapedDocument, competitors: List[ScrapedDocument],
                queries: List[str], generate_queries: bool = True) -> AnalysisResult:
        """Run every step and assemble the report.

        Raises AnalysisError when the target cannot be embedded at all or
        yields no categories; competitor failures only shrink the report.
        """
        start_time = time.time()
        context = AnalysisContext(
            target=target,
            competitors=list(competitors),
            queries=list(queries),
            config={'generate_queries': generate_queries},
        )
        context = self.execute(context)

        return AnalysisResult(
            analysis_id=new_analysis_id(),
            target_url=target.url,
            target_title=target.title,
            target_score=context.target_score,
            competitor_results=context.competitor_results,
            radar_data=context.radar_data,
            coverage_gaps=context.coverage_gaps,
            recommendations=context.recommendations,
            queries=context.queries,
            primary_topic=context.primary_topic,
            entities=context.entities,
            optimization_recommendations=context.optimization_recommendations,
            target_category_scores=context.target_scores,
            processing_time=time.time() - start_time,
        )


class AnalysisService:
    """Scrape, discover, analyze and cache a full coverage report."""

    def __init__(self, analyzer: ContentAnalyzer, scraper: ContentScraper, logger: Logger,
                 cache: Optional[Cache] = None, discovery: Optional[CompetitorDiscovery] = None,
                 scrape_concurrency: int = 3, scrape_delay: float = 1.0,
                 cache_ttl: int = 86400, sleep: Callable[[float], None] = time.sleep):
        self.analyzer = analyzer
        self.scraper = scraper
        self.logger = logger
        self.cache = cache
        self.discovery = discovery
        self.scrape_concurrency = scrape_concurrency
        self.scrape_delay = scrape_delay
        self.cache_ttl = cache_ttl
        self.sleep = sleep

    def run(self, request: AnalysisRequest) -> AnalysisResult:
        start_time = time.time()

        try:
            request.validate()
        except ValidationError as e:
            raise AnalysisError(str(e), "VALIDATION_ERROR", 400) from e

        cache_key = analysis_cache_key(request.target_url, request.competitor_urls,
                                       request.queries, self.cache_options(request))
        cached = self._cached_result(cache_key)
        if cached is not None:
            self.logger.info(f"Returning cached analysis for {request.target_url}")
            return cached

        try:
            target = self.scraper.scrape(request.target_url)
        except ProviderError as e:
            raise AnalysisError(f"Failed to scrape target URL: {e}", "SCRAPING_ERROR", 502) from e

        competitor_urls = list(request.competitor_urls)
        if not competitor_urls and request.include_top_results:
            competitor_urls = self.discover_competitors(target, request.result_count)

        competitors = []
        if competitor_urls:
            scraped = scrape_multiple(self.scraper, competitor_urls, self.scrape_concurrency,
                                      self.scrape_delay, self.sleep)
            competitors = [document for document in scraped if document is not None]

        result = self.analyzer.analyze(target, competitors, request.queries,
                                       generate_queries=request.generate_queries)
        result.processing_time = time.time() - start_time

        if self.cache is not None:
            self.cache.set(cache_key, result.to_dict(), self.cache_ttl // 2)
        return result

    def cache_options(self, request: AnalysisRequest) -> Dict[str, Any]:
        """Request flags and analyzer settings that shape the cached report."""
        return {
            'include_top_results': request.include_top_results,
            'result_count': request.result_count,
            'generate_queries': request.generate_queries,
            'similarity_threshold': self.analyzer.threshold,
            'gap_threshold': self.analyzer.gap_identifier.gap_threshold,
        }

    def discover_competitors(self, target: ScrapedDocument, result_count: int) -> List[str]:
        """Search results for the target title, excluding the target itself."""
        if self.discovery is None:
            return []
        try:
            urls = self.discovery.discover(target.title, result_count)
        except ProviderError as e:
            self.logger.warning(f"Competitor discovery failed: {e}")
            return []
        return [url for url in urls if url.rstrip('/') != target.url.rstrip('/')]

    def _cached_result(self, cache_key: str) -> Optional[AnalysisResult]:
        if self.cache is None:
            return None
        cached = self.cache.get(cache_key)
        if not cached:
            return None
        try:
            return AnalysisResult.from_dict(cached)
        except (KeyError, TypeError, ValueError) as e:
            self.logger.warning(f"Ignoring malformed cached analysis: {e}")
            return None
