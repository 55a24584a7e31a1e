"""
Primary topic detection.

Every page is first scored heuristically: candidate phrases are collected from
the title, meta description, headings, URL and body, weighted by where they
appear, and the best-placed one wins. When a completion provider is
configured the LLM's answer is preferred and the heuristic candidates supply
sub-entities, the combined topic and any concept that should override a bare
organization name.
"""
import math
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Pattern, Sequence, Tuple

from .core.errors import CompletionError
from .core.interfaces import CompletionProvider
from .core.models import ContentElements, EntityType, PrimaryTopic, TopicSource
from .llm import parse_json_response
from .utils import bare_domain, is_valid_url, logger

STOP_WORDS = frozenset([
    'the', 'a', 'an', 'and', 'or', 'but', 'in', 'on', 'at', 'to', 'for', 'of', 'with', 'by',
    'is', 'are', 'was', 'were', 'be', 'been', 'being', 'have', 'has', 'had', 'do', 'does', 'did',
    'will', 'would', 'could', 'should', 'may', 'might', 'can', 'this', 'that', 'these', 'those',
    'i', 'you', 'he', 'she', 'it', 'we', 'they', 'me', 'him', 'her', 'us', 'them',
])
URL_NOISE = frozenset(['html', 'php', 'js', 'css', 'api', 'www'])

SOURCE_WEIGHTS: Dict[TopicSource, float] = {
    TopicSource.TITLE: 0.30,
    TopicSource.META: 0.25,
    TopicSource.HEADING: 0.20,
    TopicSource.URL: 0.07,
    TopicSource.BODY: 0.05,
}
CONFIDENCE_WEIGHTS: Dict[TopicSource, float] = {
    TopicSource.TITLE: 0.4,
    TopicSource.META: 0.25,
    TopicSource.HEADING: 0.2,
    TopicSource.URL: 0.1,
    TopicSource.BODY: 0.05,
}
PAGE_SOURCES = (TopicSource.TITLE, TopicSource.META, TopicSource.HEADING)
SUB_ENTITY_SOURCES = PAGE_SOURCES + (TopicSource.BODY,)

CAPITALIZED_NGRAM_BONUS = 0.05
NGRAM_BONUS = 0.02
SALIENT_TYPE_BOOST = 0.15
WEAK_CANDIDATE_SCORE = 0.15
BODY_FALLBACK_SCORE = 0.12
MAX_SUB_ENTITIES = 5
FALLBACK_CONFIDENCE = 0.1
SAFE_FALLBACK_CONFIDENCE = 0.3
DEFAULT_LLM_CONFIDENCE = 0.7
SALIENT_CONCEPT_CONFIDENCE = 0.7

CAPITALIZED_NGRAM = re.compile(r'[A-Z][a-z]+(?: [A-Z][a-z]+)+')
CAPITALIZED_START = re.compile(r'^[A-Z][a-z]+')
URL_PATTERN = re.compile(r'^https?://', re.IGNORECASE)
COMBINED_PATTERNS = (
    re.compile(r'(.+)\s+for\s+(.+)', re.IGNORECASE),
    re.compile(r'(.+)\s+in\s+(.+)', re.IGNORECASE),
    re.compile(r'(.+)\s+with\s+(.+)', re.IGNORECASE),
)

TOPIC_SYSTEM_PROMPT = (
    "You are an expert at identifying the main topic or entity of a web page for SEO "
    "and semantic analysis. Return only valid JSON."
)


# ============================================================================
# ENTITY TYPE CLASSIFICATION
# ============================================================================

@dataclass(frozen=True)
class EntityRule:
    """Assign entity_type when any keyword occurs in the lower-cased entity
    or the pattern matches the entity as written."""
    entity_type: EntityType
    keywords: Tuple[str, ...] = ()
    pattern: Optional[Pattern] = None

    def matches(self, entity: str) -> bool:
        lowered = entity.lower()
        if any(keyword in lowered for keyword in self.keywords):
            return True
        return bool(self.pattern and self.pattern.search(entity))


DEFAULT_ENTITY_RULES: Tuple[EntityRule, ...] = (
    EntityRule(
        EntityType.ORGANIZATION,
        ('agency', 'company', 'group', 'firm', 'influence', 'consulting', 'solutions',
         'partners', 'media', 'marketing', 'seo'),
        re.compile(r'\b(?:corp|inc|llc|ltd)\b', re.IGNORECASE),
    ),
    EntityRule(EntityType.ORGANIZATION, ('university', 'college', 'school', 'institute')),
    EntityRule(EntityType.PRODUCT, ('course', 'program', 'training', 'workshop', 'software', 'platform')),
    EntityRule(EntityType.LOCATION, ('new york', 'california', 'london', 'paris', 'chicago', 'boston')),
    EntityRule(EntityType.PERSON, pattern=re.compile(
        r'^(?:(?:Dr|Mr|Mrs|Ms|Prof)\.\s|[A-Z][a-z]+\s[A-Z][a-z]+$)'
    )),
    EntityRule(EntityType.EVENT, ('conference', 'summit', 'meetup', 'workshop')),
    EntityRule(EntityType.SERVICE, ('service',)),
)


def page_domain(url: str) -> str:
    """Bare hostname of a page URL, or '' when the URL is not usable."""
    if not url or not is_valid_url(url):
        return ''
    return bare_domain(url)


def domain_to_brand(domain: str) -> str:
    """'acme-corp.com' -> 'Acme Corp'."""
    base = domain.split('.')[0]
    return ' '.join(word[:1].upper() + word[1:] for word in re.split(r'[-_]', base) if word)


class EntityTypeClassifier:
    """Ordered, data-driven entity type rules."""

    def __init__(self, rules: Sequence[EntityRule] = DEFAULT_ENTITY_RULES,
                 default: EntityType = EntityType.CONCEPT):
        self.rules = tuple(rules)
        self.default = default

    def classify(self, entity: str, url: Optional[str] = None) -> EntityType:
        # Anything naming the site itself is the organization
        stem = page_domain(url or '').split('.')[0].lower()
        if stem and stem in entity.lower():
            return EntityType.ORGANIZATION

        for rule in self.rules:
            if rule.matches(entity):
                return rule.entity_type
        return self.default


# ============================================================================
# CANDIDATE EXTRACTION
# ============================================================================

def capitalized_ngrams(text: str) -> List[str]:
    """Runs of two or more capitalized words."""
    return [match.strip() for match in CAPITALIZED_NGRAM.findall(text or '')]


def leading_capital_ngrams(text: str, max_n: int = 5) -> List[str]:
    """All 2..max_n word n-grams whose first word is capitalized."""
    words = (text or '').split()
    ngrams = []
    for n in range(2, min(max_n, len(words)) + 1):
        for i in range(len(words) - n + 1):
            if CAPITALIZED_START.match(words[i]):
                ngrams.append(' '.join(words[i:i + n]))
    return ngrams


def frequent_phrases(text: str, max_n: int = 5, limit: int = 10) -> List[str]:
    """Most frequent capitalized-start n-grams, ties in first-seen order."""
    counts = Counter(leading_capital_ngrams(text, max_n))
    return [phrase for phrase, _ in counts.most_common(limit)]


def url_phrases(url: str) -> List[str]:
    """Title-cased phrases from URL path segments: /seo-services -> 'Seo Services'."""
    if not is_valid_url(url or ''):
        return []
    path = re.sub(r'^https?://[^/]+', '', url).split('?')[0].split('#')[0]

    phrases = []
    for segment in filter(None, path.split('/')):
        words = [w.capitalize() for w in re.split(r'[-_\s]+', segment)]
        kept = [
            w for w in words
            if len(w) > 2 and w.lower() not in STOP_WORDS and w.lower() not in URL_NOISE
        ]
        if kept:
            phrases.append(' '.join(kept))
    return phrases


def body_frequency(body: str, entity: str) -> int:
    """Case-insensitive whole-phrase occurrences of entity in body."""
    if not body or not entity:
        return 0
    pattern = re.compile(r'\b' + re.escape(entity.lower()) + r'\b')
    return len(pattern.findall(body.lower()))


def detect_combined_topic(entities: List[str]) -> Optional[str]:
    """An 'X for/in/with Y' entity, else the top two when they share no words."""
    if len(entities) < 2:
        return None

    for entity in entities:
        if any(pattern.match(entity) for pattern in COMBINED_PATTERNS):
            return entity

    first, second = entities[0], entities[1]
    if not set(first.lower().split()) & set(second.lower().split()):
        return f"{first} {second}"
    return None


def calculate_confidence(entity: str, sources: Sequence[TopicSource], frequency: int) -> float:
    confidence = sum(CONFIDENCE_WEIGHTS[source] for source in sources)
    if frequency > 0:
        confidence += min(frequency / 20, 0.2)
    if len(entity.split()) > 2:
        confidence += 0.1
    return min(confidence, 1.0)


@dataclass
class TopicCandidate:
    """Accumulated evidence for one candidate phrase."""
    score: float = 0.0
    sources: List[TopicSource] = field(default_factory=list)
    frequency: int = 0
    entity_type: EntityType = EntityType.CONCEPT

    def has_source(self, sources: Sequence[TopicSource]) -> bool:
        return any(source in self.sources for source in sources)


@dataclass
class CandidateAnalysis:
    """Heuristic detection result plus the candidate map it was chosen from."""
    topic: PrimaryTopic
    candidates: Dict[str, TopicCandidate]


# ============================================================================
# DETECTOR
# ============================================================================

class TopicDetector:
    """Determine the single best-fit subject of a page."""

    def __init__(self, completion_provider: Optional[CompletionProvider] = None,
                 classifier: Optional[EntityTypeClassifier] = None):
        self.completion_provider = completion_provider
        self.classifier = classifier or EntityTypeClassifier()

    def detect(self, elements: ContentElements) -> PrimaryTopic:
        analysis = self.analyze_candidates(elements)

        if self.completion_provider is not None:
            topic = self._detect_with_llm(elements, analysis)
            if topic is not None:
                return topic

        return analysis.topic

    # ------------------------------------------------------------------
    # Heuristic scoring
    # ------------------------------------------------------------------

    def analyze_candidates(self, elements: ContentElements) -> CandidateAnalysis:
        title = elements.title or ''
        body = elements.body_text or ''
        url = elements.url or ''
        candidates: Dict[str, TopicCandidate] = {}

        for text, source in self._source_texts(elements):
            self._add_candidate(candidates, text, source, 0.0)
            for gram in capitalized_ngrams(text):
                self._add_candidate(candidates, gram, source, CAPITALIZED_NGRAM_BONUS)
            for gram in leading_capital_ngrams(text):
                self._add_candidate(candidates, gram, source, NGRAM_BONUS)
        for phrase in url_phrases(url):
            self._add_candidate(candidates, phrase, TopicSource.URL, 0.0)

        for entity, candidate in candidates.items():
            candidate.entity_type = self.classifier.classify(entity, url)
            if (candidate.entity_type in (EntityType.PERSON, EntityType.ORGANIZATION)
                    and candidate.has_source((TopicSource.TITLE, TopicSource.HEADING))):
                candidate.score += SALIENT_TYPE_BOOST

        for entity, candidate in candidates.items():
            candidate.frequency = body_frequency(body, entity)
            candidate.score += SOURCE_WEIGHTS[TopicSource.BODY] * min(candidate.frequency / 10, 1)

        fallback_body_entities: List[str] = []
        if not candidates or all(c.score < WEAK_CANDIDATE_SCORE for c in candidates.values()):
            fallback_body_entities = capitalized_ngrams(body) + frequent_phrases(body)
            for gram in fallback_body_entities:
                if gram not in candidates:
                    candidates[gram] = TopicCandidate(
                        score=BODY_FALLBACK_SCORE,
                        sources=[TopicSource.BODY],
                        entity_type=self.classifier.classify(gram, url),
                    )

        best_entity = self._select(candidates)
        domain = page_domain(url)
        best_sources: List[TopicSource] = []
        best_frequency = 0
        best_type = EntityType.CONCEPT
        if best_entity:
            best = candidates[best_entity]
            best_sources, best_frequency, best_type = best.sources, best.frequency, best.entity_type

        if best_entity and (URL_PATTERN.match(best_entity) or best_entity == domain):
            brand_entity = self._resolve_brand(candidates, domain)
            if brand_entity:
                best_entity = brand_entity
                brand = candidates[brand_entity]
                best_sources, best_frequency, best_type = brand.sources, brand.frequency, brand.entity_type
            else:
                best_entity = domain_to_brand(domain)
                best_sources, best_frequency, best_type = [TopicSource.URL], 0, EntityType.ORGANIZATION

        if not best_entity or len(best_entity) < 2:
            first_heading = elements.headings[0].text if elements.headings else ''
            fallback = (
                (title if len(title) > 2 else '')
                or first_heading
                or elements.meta_description
                or (fallback_body_entities[0] if fallback_body_entities else '')
                or domain_to_brand(domain)
                or 'Untitled'
            )
            logger.info(f"No topic candidate found, falling back to '{fallback}'")
            topic = PrimaryTopic(
                entity=fallback,
                confidence=FALLBACK_CONFIDENCE,
                entity_type=EntityType.CONCEPT,
                source=TopicSource.TITLE,
            )
            return CandidateAnalysis(topic=topic, candidates=candidates)

        sub_entities = self._sub_entities(candidates, best_entity)
        topic = PrimaryTopic(
            entity=best_entity,
            confidence=calculate_confidence(best_entity, best_sources, best_frequency),
            entity_type=best_type,
            source=best_sources[0] if best_sources else TopicSource.URL,
            sub_entities=tuple(sub_entities),
            combined_topic=detect_combined_topic([best_entity] + sub_entities),
        )
        logger.debug(f"Heuristic topic '{topic.entity}' from {len(candidates)} candidates")
        return CandidateAnalysis(topic=topic, candidates=candidates)

    def _source_texts(self, elements: ContentElements) -> List[Tuple[str, TopicSource]]:
        texts = [
            (elements.title, TopicSource.TITLE),
            (elements.meta_description, TopicSource.META),
        ]
        texts.extend((heading.text, TopicSource.HEADING) for heading in elements.headings)
        texts.append((elements.url, TopicSource.URL))
        return [(text, source) for text, source in texts if text and len(text) > 2]

    @staticmethod
    def _add_candidate(candidates: Dict[str, TopicCandidate], text: str,
                       source: TopicSource, bonus: float) -> None:
        text = text.strip()
        if len(text) <= 2:
            return
        candidate = candidates.setdefault(text, TopicCandidate())
        # A source contributes once per candidate
        if source in candidate.sources:
            return
        candidate.sources.append(source)
        candidate.score += SOURCE_WEIGHTS[source] + bonus

    @staticmethod
    def _select(candidates: Dict[str, TopicCandidate]) -> str:
        best_entity, best_score = '', 0.0
        for entity, candidate in candidates.items():
            if candidate.has_source(PAGE_SOURCES) and candidate.score > best_score:
                best_entity, best_score = entity, candidate.score
        if best_entity:
            return best_entity

        for entity, candidate in candidates.items():
            if candidate.score > best_score:
                best_entity, best_score = entity, candidate.score
        return best_entity

    @staticmethod
    def _resolve_brand(candidates: Dict[str, TopicCandidate], domain: str) -> str:
        if not domain:
            return ''
        brand = domain_to_brand(domain).lower()
        lowered_domain = domain.lower()
        for entity in candidates:
            if URL_PATTERN.match(entity) or entity == domain:
                continue
            lowered = entity.lower()
            if lowered == brand or lowered in lowered_domain or (brand and brand in lowered):
                return entity
        return ''

    @staticmethod
    def _sub_entities(candidates: Dict[str, TopicCandidate], best_entity: str) -> List[str]:
        ranked = sorted(
            (
                (entity, candidate) for entity, candidate in candidates.items()
                if entity != best_entity
                and candidate.has_source(SUB_ENTITY_SOURCES)
                and candidate.score > 0.1
            ),
            key=lambda item: item[1].score,
            reverse=True,
        )
        return [entity for entity, _ in ranked[:MAX_SUB_ENTITIES]]

    # ------------------------------------------------------------------
    # LLM detection
    # ------------------------------------------------------------------

    def _detect_with_llm(self, elements: ContentElements,
                         analysis: CandidateAnalysis) -> Optional[PrimaryTopic]:
        try:
            reply = self.completion_provider.complete(
                build_topic_prompt(elements),
                system=TOPIC_SYSTEM_PROMPT,
                temperature=0.1,
                max_tokens=200,
            )
        except CompletionError as e:
            logger.warning(f"LLM topic detection failed, using heuristics: {e}")
            return None

        parsed = parse_json_response(reply, expect=dict)
        if not parsed.ok:
            logger.warning("LLM topic reply was not a JSON object, using heuristics")
            return None

        entity = str(parsed.value.get('entity') or '').strip()
        if len(entity) <= 2 or URL_PATTERN.match(entity):
            return None

        entity_type = EntityType.parse(parsed.value.get('entityType'))
        confidence = normalize_confidence(parsed.value.get('confidence'))

        if entity_type is EntityType.ORGANIZATION:
            override = self._salient_concept(elements, analysis)
            if override is not None:
                logger.info(f"Using salient concept '{override[0]}' instead of organization '{entity}'")
                entity, entity_type, confidence = override

        return PrimaryTopic(
            entity=entity,
            confidence=confidence,
            entity_type=entity_type,
            source=TopicSource.TITLE,
            sub_entities=analysis.topic.sub_entities,
            combined_topic=analysis.topic.combined_topic,
        )

    @staticmethod
    def _salient_concept(elements: ContentElements,
                         analysis: CandidateAnalysis) -> Optional[Tuple[str, EntityType, float]]:
        pool: List[Tuple[str, EntityType, float]] = []
        for extracted in elements.extracted_entities:
            if extracted.type in ('concept', 'service'):
                entity_type = EntityType.SERVICE if extracted.type == 'service' else EntityType.CONCEPT
                pool.append((extracted.entity, entity_type, extracted.confidence))
        for entity, candidate in analysis.candidates.items():
            if candidate.entity_type is EntityType.CONCEPT and not URL_PATTERN.match(entity):
                pool.append((entity, EntityType.CONCEPT,
                             calculate_confidence(entity, candidate.sources, candidate.frequency)))

        salient = [item for item in pool if item[0] and item[2] > SALIENT_CONCEPT_CONFIDENCE]
        if not salient:
            return None
        return max(salient, key=lambda item: item[2])


def build_topic_prompt(elements: ContentElements) -> str:
    headings = ' | '.join(h.text for h in elements.headings)
    body = (elements.body_text or '')[:500]
    return (
        "Given the following web page elements, identify the main subject or topic (service, "
        "concept, product, etc.) that best represents the page. Only return the organization if "
        "the page is about the company itself. If both a brand/organization and a salient "
        "concept/service are present, prefer the concept/service. If the title or H1 contains "
        "both a brand and a topic, prefer the non-brand segment. Return a JSON object with "
        "fields: entity, entityType (organization|product|person|concept|service|location|event), "
        "confidence (0-1), and a short reason. Do not return a URL as the entity. If you cannot "
        'determine, return {"entity": "Unknown", "entityType": "Concept", "confidence": 0.1, '
        '"reason": "Insufficient information"}.\n\n'
        f"Title: {elements.title}\n"
        f"Meta: {elements.meta_description or ''}\n"
        f"Headings: {headings}\n"
        f"URL: {elements.url}\n"
        f"Body (first 500 chars): {body}\n"
    )


def normalize_confidence(value) -> float:
    """LLM confidence as a float in [0.1, 1]; missing, zero or invalid means 0.7."""
    try:
        confidence = float(value)
    except (TypeError, ValueError):
        return DEFAULT_LLM_CONFIDENCE
    if math.isnan(confidence) or confidence == 0:
        return DEFAULT_LLM_CONFIDENCE
    return max(0.1, min(1.0, confidence))


def extract_primary_topic_safely(elements: ContentElements,
                                 detector: Optional[TopicDetector] = None) -> PrimaryTopic:
    """Detect the primary topic; any failure yields a low-confidence title-based topic."""
    try:
        return (detector or TopicDetector()).detect(elements)
    except Exception as e:
        logger.warning(f"Primary topic detection failed, using fallback: {e}")
        return PrimaryTopic(
            entity=' '.join((elements.title or '').split()[:3]),
            confidence=SAFE_FALLBACK_CONFIDENCE,
            entity_type=EntityType.CONCEPT,
            source=TopicSource.TITLE,
        )
