"""
Query categorization against an ordered keyword table.
"""
from dataclasses import dataclass
from typing import Sequence, Tuple


@dataclass(frozen=True)
class CategoryRule:
    """A category and the keywords that select it."""
    category: str
    keywords: Tuple[str, ...]

    def matches(self, lowered_query: str) -> bool:
        return any(keyword in lowered_query for keyword in self.keywords)


DEFAULT_CATEGORY_TABLE: Tuple[CategoryRule, ...] = (
    CategoryRule('Technical', ('api', 'code', 'programming', 'development', 'technical', 'software')),
    CategoryRule('Marketing', ('marketing', 'advertising', 'promotion', 'campaign', 'brand')),
    CategoryRule('SEO', ('seo', 'search', 'ranking', 'optimization', 'keywords')),
    CategoryRule('Content', ('content', 'blog', 'writing', 'article', 'copywriting')),
    CategoryRule('Business', ('business', 'strategy', 'growth', 'revenue', 'profit')),
    CategoryRule('Design', ('design', 'ui', 'ux', 'interface', 'visual')),
    CategoryRule('Analytics', ('analytics', 'data', 'metrics', 'tracking', 'measurement')),
)

FALLBACK_CATEGORY = 'General'


class QueryCategorizer:
    """Map a query to the first category whose keyword occurs in it (substring match)."""

    def __init__(self, table: Sequence[CategoryRule] = DEFAULT_CATEGORY_TABLE,
                 fallback: str = FALLBACK_CATEGORY):
        self.table = tuple(table)
        self.fallback = fallback

    def categorize(self, query: str) -> str:
        lowered = query.lower()
        for rule in self.table:
            if rule.matches(lowered):
                return rule.category
        return self.fallback

    @property
    def categories(self) -> Tuple[str, ...]:
        return tuple(rule.category for rule in self.table)


_default_categorizer = QueryCategorizer()


def categorize_query(query: str) -> str:
    """Categorize a query with the default table."""
    return _default_categorizer.categorize(query)
