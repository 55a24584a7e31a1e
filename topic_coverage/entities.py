"""
Semantic entity extraction from page content.
"""
import re
from typing import Any, Dict, List, Optional

from .core.errors import CompletionError
from .core.interfaces import CompletionProvider
from .core.models import EXTRACTED_ENTITY_TYPES, ExtractedEntity
from .llm import parse_json_response
from .strategy import FallbackChain, Strategy
from .utils import logger

MIN_LLM_CONFIDENCE = 70  # percent
TEXT_PARSED_CONFIDENCE = 0.8
SERVICE_PATTERN_CONFIDENCE = 0.75
ORGANIZATION_PATTERN_CONFIDENCE = 0.70

SERVICE_PATTERN = re.compile(r'\b\w+(?:ing|ment|tion|sion)\b', re.IGNORECASE)
ORGANIZATION_PATTERN = re.compile(r'\b[A-Z][a-z]+(?:\s+[A-Z][a-z]+)*\b')
ENTITY_FIELD = re.compile(r'"entity":\s*"([^"]+)"')
TYPE_FIELD = re.compile(r'"type":\s*"([^"]+)"')

COMMON_WORDS = frozenset([
    'the', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by',
    'this', 'that', 'these', 'those', 'services', 'solutions', 'company', 'business',
    'marketing', 'digital', 'online',
])


def entities_prompt(content: str, title: str) -> str:
    return f"""Analyze this content and extract key semantic entities. Focus on:

SERVICES: What services/solutions are offered (e.g., "Digital Marketing", "SEO Services")
INDUSTRIES: What industries are served (e.g., "Higher Education", "Healthcare")
TECHNOLOGIES: What technologies/platforms are mentioned (e.g., "Google Analytics", "WordPress")
ORGANIZATIONS: What companies/institutions are referenced (e.g., "UPCEA", "Palo Alto University")
CONCEPTS: What key concepts/methodologies are discussed (e.g., "Search Engine Optimization", "Content Marketing")
LOCATIONS: Geographic locations mentioned (e.g., "New Orleans", "California")

Content Title: {title}
Content: {content[:4000]}

Return JSON array with this exact format:
[
  {{
    "entity": "Digital Marketing",
    "type": "service",
    "confidence": 95,
    "context": "brief context where found"
  }}
]

Extract 10-15 most important entities. Exclude generic words like "services", "solutions", "company". Focus on specific, actionable entities that would be useful for competitor analysis and content gap identification."""


def normalize_entity_type(value: Any) -> str:
    lowered = str(value or '').strip().lower()
    return lowered if lowered in EXTRACTED_ENTITY_TYPES else 'concept'


def _as_percent(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    # Accept both 0-1 and 0-100 scales
    return float(value) * 100 if value <= 1 else float(value)


def parse_entities(reply: str) -> List[ExtractedEntity]:
    """Entities from an LLM reply; JSON first, then line-by-line field matching."""
    parsed = parse_json_response(reply, expect=list)
    if not parsed.ok:
        entities = []
        for line in reply.splitlines():
            entity_match = ENTITY_FIELD.search(line)
            type_match = TYPE_FIELD.search(line)
            if entity_match and type_match:
                entities.append(ExtractedEntity(
                    entity=entity_match.group(1),
                    type=normalize_entity_type(type_match.group(1)),
                    confidence=TEXT_PARSED_CONFIDENCE,
                    context='parsed from text response',
                ))
        return entities

    entities = []
    for item in parsed.value:
        if not isinstance(item, dict) or not item.get('entity') or not item.get('type'):
            continue
        percent = _as_percent(item.get('confidence'))
        if percent is None or percent <= MIN_LLM_CONFIDENCE:
            continue
        entities.append(ExtractedEntity(
            entity=str(item['entity']).strip(),
            type=normalize_entity_type(item['type']),
            confidence=min(percent / 100, 1.0),
            context=item.get('context'),
        ))
    return entities


def fallback_entities(content: str) -> List[ExtractedEntity]:
    """Pattern-based entities: -ing/-ment/-tion words as services, capitalized runs as organizations."""
    entities = []

    for service in SERVICE_PATTERN.findall(content)[:5]:
        if len(service) > 6 and service.lower() not in COMMON_WORDS:
            entities.append(ExtractedEntity(
                entity=service,
                type='service',
                confidence=SERVICE_PATTERN_CONFIDENCE,
                context='extracted from content patterns',
            ))

    for organization in ORGANIZATION_PATTERN.findall(content)[:3]:
        if len(organization) > 3 and organization.lower() not in COMMON_WORDS:
            entities.append(ExtractedEntity(
                entity=organization,
                type='organization',
                confidence=ORGANIZATION_PATTERN_CONFIDENCE,
                context='extracted from capitalization patterns',
            ))

    return entities


class EntityExtractor:
    """Extract semantic entities with an LLM, falling back to text patterns."""

    def __init__(self, completion_provider: Optional[CompletionProvider] = None):
        self.completion_provider = completion_provider
        strategies = []
        if completion_provider is not None:
            strategies.append(Strategy('llm', self._extract_with_llm))
        strategies.append(Strategy('patterns', lambda content, title: fallback_entities(content)))
        self.chain = FallbackChain(strategies, name='entity extraction')

    def _extract_with_llm(self, content: str, title: str) -> List[ExtractedEntity]:
        reply = self.completion_provider.complete(
            entities_prompt(content, title), temperature=0.1, max_tokens=1000
        )
        entities = parse_entities(reply)
        if not entities:
            raise CompletionError("No entities in model response")
        return entities

    def extract(self, content: str, title: str = '') -> List[ExtractedEntity]:
        outcome = self.chain.run(content or '', title or '')
        entities = list(outcome.value or [])
        logger.info(f"Extracted {len(entities)} entities via {outcome.strategy}")
        return entities

    @staticmethod
    def summarize(entities: List[ExtractedEntity]) -> Dict[str, List[str]]:
        """Entity names grouped by type."""
        grouped: Dict[str, List[str]] = {}
        for entity in entities:
            grouped.setdefault(entity.type, []).append(entity.entity)
        return grouped
