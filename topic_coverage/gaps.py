"""
Coverage gap detection and recommendation text.

A gap is a category where the target's score trails the competitor average
by more than the gap threshold. This is a threshold heuristic: a category
absent from every competitor averages 0 and can never produce a gap.
"""
from typing import Dict, List, Optional

from .core.models import (
    CategoryScore, CompetitorResult, CoverageGap, PrimaryTopic, Priority, QueryMatch
)

RECOMMENDATION_TEMPLATES: Dict[str, str] = {
    'Technical': 'Consider adding technical documentation, code examples, and implementation guides',
    'Marketing': 'Develop marketing-focused content like case studies, campaign analyses, and strategy guides',
    'SEO': 'Create SEO-focused content including keyword research, optimization guides, and ranking strategies',
    'Content': 'Expand content variety with different formats, topics, and audience segments',
    'Business': 'Add business strategy content, growth tactics, and industry insights',
    'Design': 'Include design resources, UI/UX guides, and visual examples',
    'Analytics': 'Provide data analysis content, metrics guides, and tracking tutorials',
}
DEFAULT_RECOMMENDATION = 'Create more comprehensive content in this area'

WEAK_CATEGORY_RECOMMENDATIONS: Dict[str, str] = {
    'technical': 'Develop technical documentation, implementation guides, and code examples '
                 'to establish thought leadership.',
    'marketing': 'Publish case studies showcasing successful campaigns, ROI data, and strategic '
                 'marketing frameworks.',
    'seo': 'Create SEO-focused content including keyword research guides, ranking strategies, '
           'and algorithm update analyses.',
    'content': 'Diversify content formats: add video tutorials, infographics, interactive tools, '
               'and downloadable resources.',
    'business': 'Publish business strategy content: growth frameworks, market analysis, and '
                'industry trend reports.',
}

MAX_OVERALL_RECOMMENDATIONS = 6
WEAK_CATEGORY_SCORE = 60


def classify_priority(target_score: float, competitor_avg: float,
                      high_margin: float = 30, medium_margin: float = 20) -> Priority:
    """Priority from the size of the deficit. Boundaries are strict, so a
    deficit of exactly high_margin is medium."""
    if target_score < competitor_avg - high_margin:
        return Priority.HIGH
    if target_score < competitor_avg - medium_margin:
        return Priority.MEDIUM
    return Priority.LOW


def build_recommendation(category: str, missing_queries: List[str],
                         templates: Dict[str, str] = RECOMMENDATION_TEMPLATES) -> str:
    """Category template, optionally naming up to three missing queries."""
    base = templates.get(category, DEFAULT_RECOMMENDATION)
    if missing_queries:
        return f"{base}. Focus on topics like: {', '.join(missing_queries[:3])}."
    return base


def topic_relevance(category: str, missing_queries: List[str],
                    primary_topic: Optional[PrimaryTopic]) -> float:
    """How closely a gap relates to the page's primary topic, in [0, 1]."""
    if primary_topic is None:
        return 0.0

    entity = (primary_topic.entity or '').lower()
    sub_entities = [s.lower() for s in primary_topic.sub_entities]
    lowered_category = category.lower()

    relevance = 0.0
    if entity and entity in lowered_category:
        relevance += 0.5
    relevance += 0.2 * sum(1 for sub in sub_entities if sub in lowered_category)
    for query in missing_queries:
        lowered_query = query.lower()
        if entity and entity in lowered_query:
            relevance += 0.1
        relevance += 0.05 * sum(1 for sub in sub_entities if sub in lowered_query)
    return min(1.0, relevance)


class CoverageGapIdentifier:
    """Compare target category scores against competitor averages."""

    def __init__(self, gap_threshold: float = 10, max_missing: int = 5,
                 high_margin: float = 30, medium_margin: float = 20,
                 templates: Dict[str, str] = RECOMMENDATION_TEMPLATES):
        self.gap_threshold = gap_threshold
        self.max_missing = max_missing
        self.high_margin = high_margin
        self.medium_margin = medium_margin
        self.templates = templates

    def competitor_average(self, category: str, competitor_results: List[CompetitorResult]) -> float:
        """Mean category score over all competitors, a missing category counting as 0."""
        total = sum(c.score_for(category) or 0 for c in competitor_results)
        return total / max(len(competitor_results), 1)

    def identify(self, target_scores: List[CategoryScore],
                 competitor_results: List[CompetitorResult],
                 query_matches: List[QueryMatch],
                 primary_topic: Optional[PrimaryTopic] = None) -> List[CoverageGap]:
        gaps = []

        for target in target_scores:
            competitor_avg = self.competitor_average(target.category, competitor_results)
            if not target.score < competitor_avg - self.gap_threshold:
                continue

            missing_queries = [
                m.query for m in query_matches
                if m.category == target.category and not m.matched
            ][:self.max_missing]

            competitor_urls = []
            for competitor in competitor_results:
                score = competitor.score_for(target.category)
                if score is not None and score > target.score:
                    competitor_urls.append(competitor.url)

            gaps.append(CoverageGap(
                category=target.category,
                missing_queries=missing_queries,
                competitor_urls=competitor_urls,
                priority=classify_priority(target.score, competitor_avg,
                                           self.high_margin, self.medium_margin),
                recommendation=build_recommendation(target.category, missing_queries, self.templates),
                topic_relevance=topic_relevance(target.category, missing_queries, primary_topic),
            ))

        # sorted() is stable, so equal priorities keep category order
        return sorted(gaps, key=lambda gap: gap.priority.rank, reverse=True)


def generate_overall_recommendations(gaps: List[CoverageGap],
                                     category_scores: List[CategoryScore],
                                     queries: List[str]) -> List[str]:
    """Actionable summary lines for the report (at most six)."""
    recommendations = []

    for gap in gaps:
        if gap.priority is Priority.HIGH:
            top_missing = ', '.join(gap.missing_queries[:3])
            recommendations.append(
                f"Create comprehensive content covering {gap.category.lower()} topics: "
                f"{top_missing}. Focus on practical guides and case studies."
            )

    weak_categories = sorted(
        (s for s in category_scores if s.score < WEAK_CATEGORY_SCORE),
        key=lambda s: s.score,
    )
    for category_score in weak_categories:
        name = category_score.category.lower()
        recommendations.append(WEAK_CATEGORY_RECOMMENDATIONS.get(
            name,
            f"Strengthen {name} content with detailed guides, expert interviews, and practical templates."
        ))

    if len(queries) > 3:
        recommendations.append(
            f"Target high-value search terms: {', '.join(queries[:3])}. "
            f"Create landing pages optimized for these queries."
        )

    if category_scores:
        average = sum(s.score for s in category_scores) / len(category_scores)
        if average > 75:
            recommendations.append(
                'Leverage your content strength by creating cornerstone content that links '
                'to your best-performing pieces.'
            )
        elif average < 40:
            recommendations.append(
                'Conduct a content audit and prioritize updating your top 10 most important '
                'pages with comprehensive, user-focused information.'
            )

    return recommendations[:MAX_OVERALL_RECOMMENDATIONS]
