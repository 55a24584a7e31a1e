"""
Domain models and value objects for the topic coverage system.
"""
from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional, Tuple
from datetime import datetime
from enum import Enum

from .errors import ValidationError


# ============================================================================
# ENUMS
# ============================================================================

class Priority(Enum):
    """Priority of a coverage gap."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        """Sort rank, higher is more urgent."""
        return {"high": 3, "medium": 2, "low": 1}[self.value]


class EntityType(Enum):
    """Kinds of primary topic entities."""
    PERSON = "Person"
    ORGANIZATION = "Organization"
    PRODUCT = "Product"
    LOCATION = "Location"
    CONCEPT = "Concept"
    EVENT = "Event"
    SERVICE = "Service"

    @classmethod
    def parse(cls, value: Any, default: "EntityType" = None) -> "EntityType":
        """Case-insensitive lookup that falls back to default (Concept)."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            for member in cls:
                if member.value.lower() == value.strip().lower():
                    return member
        return default or cls.CONCEPT


class TopicSource(Enum):
    """Where a topic candidate was found on the page."""
    TITLE = "title"
    META = "meta"
    HEADING = "heading"
    URL = "url"
    BODY = "body"


EXTRACTED_ENTITY_TYPES = (
    "service", "industry", "technology", "location", "organization", "concept"
)


# ============================================================================
# VALUE OBJECTS
# ============================================================================

@dataclass(frozen=True)
class Heading:
    """A page heading."""
    level: int
    text: str

    def to_dict(self) -> Dict[str, Any]:
        return {'level': self.level, 'text': self.text}


@dataclass(frozen=True)
class EmbeddingVector:
    """Value object for embedding vectors."""
    values: Tuple[float, ...]
    model: str = ""
    source_text: str = ""

    def __post_init__(self):
        object.__setattr__(self, 'values', tuple(float(v) for v in self.values))
        if not self.values:
            raise ValueError("Embedding vector cannot be empty")

    @property
    def dimension(self) -> int:
        return len(self.values)


@dataclass(frozen=True)
class PrimaryTopic:
    """The single best-fit subject of a page."""
    entity: str
    confidence: float
    entity_type: EntityType
    source: TopicSource
    sub_entities: Tuple[str, ...] = ()
    combined_topic: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, 'sub_entities', tuple(self.sub_entities))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entity': self.entity,
            'confidence': self.confidence,
            'entity_type': self.entity_type.value,
            'source': self.source.value,
            'sub_entities': list(self.sub_entities),
            'combined_topic': self.combined_topic,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PrimaryTopic":
        return cls(
            entity=data['entity'],
            confidence=data['confidence'],
            entity_type=EntityType.parse(data.get('entity_type')),
            source=TopicSource(data.get('source', 'title')),
            sub_entities=tuple(data.get('sub_entities', ())),
            combined_topic=data.get('combined_topic'),
        )


@dataclass(frozen=True)
class ExtractedEntity:
    """A semantic entity found in page content."""
    entity: str
    type: str
    confidence: float
    context: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'entity': self.entity,
            'type': self.type,
            'confidence': self.confidence,
            'context': self.context,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ExtractedEntity":
        return cls(data['entity'], data['type'], data['confidence'], data.get('context'))


@dataclass(frozen=True)
class OptimizationRecommendation:
    """An LLM-generated SEO optimization suggestion."""
    category: str
    recommendation: str
    priority: Priority
    impact: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'recommendation': self.recommendation,
            'priority': self.priority.value,
            'impact': self.impact,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OptimizationRecommendation":
        return cls(data['category'], data['recommendation'],
                   Priority(data['priority']), data['impact'])


# ============================================================================
# ENTITIES
# ============================================================================

@dataclass(frozen=True)
class ScrapedDocument:
    """A fetched web page. Produced by the scraper, read-only downstream."""
    url: str
    title: str
    body_text: str
    meta_description: Optional[str] = None
    headings: Tuple[Heading, ...] = ()
    extracted_at: str = field(default_factory=lambda: datetime.now().isoformat())
    word_count: int = 0
    author: Optional[str] = None
    publish_date: Optional[str] = None
    keywords: Tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'headings', tuple(self.headings))
        object.__setattr__(self, 'keywords', tuple(self.keywords))

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'title': self.title,
            'body_text': self.body_text,
            'meta_description': self.meta_description,
            'headings': [h.to_dict() for h in self.headings],
            'extracted_at': self.extracted_at,
            'word_count': self.word_count,
            'author': self.author,
            'publish_date': self.publish_date,
            'keywords': list(self.keywords),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScrapedDocument":
        return cls(
            url=data['url'],
            title=data.get('title', ''),
            body_text=data.get('body_text', ''),
            meta_description=data.get('meta_description'),
            headings=tuple(Heading(h['level'], h['text']) for h in data.get('headings', [])),
            extracted_at=data.get('extracted_at') or datetime.now().isoformat(),
            word_count=data.get('word_count', 0),
            author=data.get('author'),
            publish_date=data.get('publish_date'),
            keywords=tuple(data.get('keywords', ())),
        )


@dataclass
class ContentChunk:
    """A trimmed, length-bounded slice of a document body."""
    index: int
    text: str

    def __len__(self) -> int:
        return len(self.text)


@dataclass
class QueryMatch:
    """Best-matching chunk for one query against one document."""
    query: str
    similarity: float
    category: str
    matched: bool
    context: str = ""
    best_chunk_index: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'query': self.query,
            'similarity': self.similarity,
            'category': self.category,
            'matched': self.matched,
            'context': self.context,
            'best_chunk_index': self.best_chunk_index,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QueryMatch":
        return cls(
            query=data['query'],
            similarity=data['similarity'],
            category=data['category'],
            matched=data['matched'],
            context=data.get('context', ''),
            best_chunk_index=data.get('best_chunk_index'),
        )


@dataclass
class CategoryScore:
    """Aggregated coverage for one query category."""
    category: str
    score: int
    matched_queries: int
    total_queries: int
    max_score: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'score': self.score,
            'max_score': self.max_score,
            'matched_queries': self.matched_queries,
            'total_queries': self.total_queries,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategoryScore":
        return cls(
            category=data['category'],
            score=data['score'],
            matched_queries=data['matched_queries'],
            total_queries=data['total_queries'],
            max_score=data.get('max_score', 100),
        )


@dataclass
class CompetitorResult:
    """Analysis of one competitor page."""
    url: str
    title: str
    overall_score: int
    category_scores: List[CategoryScore]
    top_queries: List[QueryMatch] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)

    def score_for(self, category: str) -> Optional[int]:
        """Score reported for a category, or None when the competitor lacks it."""
        for category_score in self.category_scores:
            if category_score.category == category:
                return category_score.score
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'url': self.url,
            'title': self.title,
            'overall_score': self.overall_score,
            'category_scores': [s.to_dict() for s in self.category_scores],
            'top_queries': [q.to_dict() for q in self.top_queries],
            'recommendations': list(self.recommendations),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CompetitorResult":
        return cls(
            url=data['url'],
            title=data.get('title', ''),
            overall_score=data['overall_score'],
            category_scores=[CategoryScore.from_dict(s) for s in data.get('category_scores', [])],
            top_queries=[QueryMatch.from_dict(q) for q in data.get('top_queries', [])],
            recommendations=list(data.get('recommendations', [])),
        )


@dataclass
class RadarPoint:
    """One axis of the target-versus-competitors comparison."""
    category: str
    target_score: int
    competitor_avg: int
    max_score: int = 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'target_score': self.target_score,
            'competitor_avg': self.competitor_avg,
            'max_score': self.max_score,
        }


@dataclass
class CoverageGap:
    """A category where the target trails its competitors."""
    category: str
    missing_queries: List[str]
    competitor_urls: List[str]
    priority: Priority
    recommendation: str
    topic_relevance: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'category': self.category,
            'missing_queries': list(self.missing_queries),
            'competitor_urls': list(self.competitor_urls),
            'priority': self.priority.value,
            'recommendation': self.recommendation,
            'topic_relevance': self.topic_relevance,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoverageGap":
        return cls(
            category=data['category'],
            missing_queries=list(data.get('missing_queries', [])),
            competitor_urls=list(data.get('competitor_urls', [])),
            priority=Priority(data['priority']),
            recommendation=data.get('recommendation', ''),
            topic_relevance=data.get('topic_relevance', 0.0),
        )


@dataclass
class ContentElements:
    """Structured page fields consumed by the primary topic detector."""
    title: str
    url: str
    body_text: str = ""
    meta_description: Optional[str] = None
    headings: List[Heading] = field(default_factory=list)
    extracted_entities: List[ExtractedEntity] = field(default_factory=list)

    @classmethod
    def from_document(cls, document: ScrapedDocument,
                      entities: Optional[List[ExtractedEntity]] = None) -> "ContentElements":
        return cls(
            title=document.title,
            url=document.url,
            body_text=document.body_text,
            meta_description=document.meta_description,
            headings=list(document.headings),
            extracted_entities=list(entities or []),
        )


# ============================================================================
# AGGREGATES
# ============================================================================

@dataclass
class AnalysisResult:
    """Full coverage report for a target page."""
    analysis_id: str
    target_url: str
    target_title: str
    target_score: int
    competitor_results: List[CompetitorResult]
    radar_data: List[RadarPoint]
    coverage_gaps: List[CoverageGap]
    recommendations: List[str]
    queries: List[str]
    primary_topic: Optional[PrimaryTopic] = None
    entities: List[ExtractedEntity] = field(default_factory=list)
    optimization_recommendations: List[OptimizationRecommendation] = field(default_factory=list)
    target_category_scores: List[CategoryScore] = field(default_factory=list)
    timestamp: str = field(default_factory=lambda: datetime.now().isoformat())
    processing_time: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'analysis_id': self.analysis_id,
            'target_url': self.target_url,
            'target_title': self.target_title,
            'target_score': self.target_score,
            'target_category_scores': [s.to_dict() for s in self.target_category_scores],
            'competitor_results': [c.to_dict() for c in self.competitor_results],
            'radar_data': [p.to_dict() for p in self.radar_data],
            'coverage_gaps': [g.to_dict() for g in self.coverage_gaps],
            'recommendations': list(self.recommendations),
            'optimization_recommendations': [r.to_dict() for r in self.optimization_recommendations],
            'queries': list(self.queries),
            'primary_topic': self.primary_topic.to_dict() if self.primary_topic else None,
            'entities': [e.to_dict() for e in self.entities],
            'timestamp': self.timestamp,
            'processing_time': self.processing_time,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AnalysisResult":
        primary_topic = data.get('primary_topic')
        return cls(
            analysis_id=data['analysis_id'],
            target_url=data['target_url'],
            target_title=data.get('target_title', ''),
            target_score=data['target_score'],
            competitor_results=[CompetitorResult.from_dict(c) for c in data.get('competitor_results', [])],
            radar_data=[RadarPoint(**p) for p in data.get('radar_data', [])],
            coverage_gaps=[CoverageGap.from_dict(g) for g in data.get('coverage_gaps', [])],
            recommendations=list(data.get('recommendations', [])),
            queries=list(data.get('queries', [])),
            primary_topic=PrimaryTopic.from_dict(primary_topic) if primary_topic else None,
            entities=[ExtractedEntity.from_dict(e) for e in data.get('entities', [])],
            optimization_recommendations=[
                OptimizationRecommendation.from_dict(r)
                for r in data.get('optimization_recommendations', [])
            ],
            target_category_scores=[CategoryScore.from_dict(s) for s in data.get('target_category_scores', [])],
            timestamp=data.get('timestamp') or datetime.now().isoformat(),
            processing_time=data.get('processing_time', 0.0),
        )


@dataclass
class AnalysisRequest:
    """Inputs for a full scrape-and-analyze run."""
    target_url: str
    competitor_urls: List[str] = field(default_factory=list)
    queries: List[str] = field(default_factory=list)
    include_top_results: bool = True
    result_count: int = 5
    generate_queries: bool = True

    def validate(self) -> None:
        """Raise ValidationError when the request cannot be run."""
        from ..utils import is_valid_url

        if not is_valid_url(self.target_url):
            raise ValidationError(f"Invalid URL format: {self.target_url}")
        for url in self.competitor_urls:
            if not is_valid_url(url):
                raise ValidationError(f"Invalid competitor URL: {url}")
        for query in self.queries:
            if not 1 <= len(query) <= 200:
                raise ValidationError("Queries must be between 1 and 200 characters")
        if not 1 <= self.result_count <= 10:
            raise ValidationError("result_count must be between 1 and 10")


# ============================================================================
# PIPELINE CONTEXT
# ============================================================================

@dataclass
class AnalysisContext:
    """Context object threaded through the analysis pipeline steps."""
    target: ScrapedDocument
    competitors: List[ScrapedDocument] = field(default_factory=list)
    queries: List[str] = field(default_factory=list)
    config: Dict[str, Any] = field(default_factory=dict)
    entities: List[ExtractedEntity] = field(default_factory=list)
    primary_topic: Optional[PrimaryTopic] = None
    target_matches: List[QueryMatch] = field(default_factory=list)
    target_scores: List[CategoryScore] = field(default_factory=list)
    target_score: int = 0
    competitor_results: List[CompetitorResult] = field(default_factory=list)
    radar_data: List[RadarPoint] = field(default_factory=list)
    coverage_gaps: List[CoverageGap] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    optimization_recommendations: List[OptimizationRecommendation] = field(default_factory=list)

    def add_competitor_result(self, result: CompetitorResult) -> None:
        """Add a competitor result to the context."""
        self.competitor_results.append(result)
