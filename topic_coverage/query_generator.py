"""
Query Generator - search queries a page's competitors might rank for.

Generation is an ordered fallback: Gemini keyword extraction, then OpenAI
query generation, then plain word frequency, then a fixed starter list.
"""
import re
from typing import List, Optional

from .core.errors import CompletionError, ProviderError
from .core.interfaces import CompletionProvider
from .core.models import PrimaryTopic
from .llm import parse_json_response
from .strategy import FallbackChain, Strategy
from .utils import frequent_terms, logger

DEFAULT_QUERY_COUNT = 20
DEFAULT_QUERIES = [
    'content marketing strategies',
    'SEO best practices',
    'digital marketing tips',
    'online business growth',
    'website optimization',
]
LIST_ITEM_PREFIX = re.compile(r'^\d+\.?\s*["\']?')
LIST_ITEM_SUFFIX = re.compile(r'["\']?,?$')


def keywords_prompt(content: str, count: int) -> str:
    return (
        f"Extract {count} relevant keywords and search terms from the following content.\n"
        "Focus on:\n"
        "- Main topics and themes\n"
        "- Technical terms and concepts\n"
        "- Problem statements\n"
        "- Related search queries users might use\n\n"
        "Return ONLY a JSON array of strings, no additional text or formatting.\n\n"
        f"Content: {content[:4000]}"
    )


def queries_prompt(content: str, count: int) -> str:
    return (
        f"Based on the following content, generate {count} specific, relevant search queries "
        "that competitors might rank for. Focus on:\n"
        "- Key topics and themes\n"
        "- Technical terms and concepts\n"
        "- Problem statements the content addresses\n"
        "- Related questions users might ask\n\n"
        f"Content: {content[:3000]}\n\n"
        "Return ONLY a JSON array of strings, no additional text:"
    )


def parse_query_list(reply: str, count: int) -> List[str]:
    """Queries from an LLM reply: a JSON array, or one query per line."""
    parsed = parse_json_response(reply, expect=list)
    if parsed.ok:
        queries = [q.strip() for q in parsed.value if isinstance(q, str) and q.strip()]
    else:
        queries = []
        for line in reply.splitlines():
            line = line.strip()
            if not line or '[' in line or ']' in line:
                continue
            line = LIST_ITEM_SUFFIX.sub('', LIST_ITEM_PREFIX.sub('', line)).strip()
            if len(line) > 2:
                queries.append(line)

    if not queries:
        raise CompletionError("No queries found in model response")
    return queries[:count]


class QueryGenerator:
    """Generate search queries from page content."""

    def __init__(self, gemini: Optional[CompletionProvider] = None,
                 openai: Optional[CompletionProvider] = None):
        strategies = []
        if gemini is not None:
            strategies.append(Strategy('gemini', self._with_provider(gemini, keywords_prompt, 0.3, 800)))
        if openai is not None:
            strategies.append(Strategy('openai', self._with_provider(openai, queries_prompt, 0.7, 800)))
        strategies.append(Strategy('frequency', self._frequency_queries))
        strategies.append(Strategy('defaults', lambda content, count: DEFAULT_QUERIES[:count]))
        self.chain = FallbackChain(strategies, name='query generation')

    @staticmethod
    def _with_provider(provider: CompletionProvider, build_prompt, temperature: float, max_tokens: int):
        def generate(content: str, count: int) -> List[str]:
            reply = provider.complete(build_prompt(content, count),
                                      temperature=temperature, max_tokens=max_tokens)
            return parse_query_list(reply, count)
        return generate

    @staticmethod
    def _frequency_queries(content: str, count: int) -> List[str]:
        terms = frequent_terms(content, limit=count)
        if not terms:
            raise ProviderError("Content has no usable terms")
        return terms

    def generate(self, content: str, count: int = DEFAULT_QUERY_COUNT) -> List[str]:
        if count <= 0:
            return []
        outcome = self.chain.run(content, count)
        logger.info(f"Generated {len(outcome.value or [])} queries via {outcome.strategy}")
        return list(outcome.value or [])


def filter_queries_by_topic(queries: List[str], primary_topic: Optional[PrimaryTopic]) -> List[str]:
    """Reorder queries by relevance to the primary topic; nothing is dropped.

    +10 when the query contains the entity, +5 per contained sub-entity and
    +2 per entity word that is also a query word. Ties keep input order.
    """
    if primary_topic is None or not primary_topic.entity:
        return list(queries)

    entity = primary_topic.entity.lower()
    sub_entities = [s.lower() for s in primary_topic.sub_entities]
    entity_words = entity.split(' ')

    def relevance(query: str) -> int:
        lowered = query.lower()
        score = 10 if entity in lowered else 0
        score += 5 * sum(1 for sub in sub_entities if sub in lowered)
        query_words = lowered.split(' ')
        score += 2 * sum(1 for word in entity_words if word in query_words)
        return score

    return sorted(queries, key=relevance, reverse=True)
