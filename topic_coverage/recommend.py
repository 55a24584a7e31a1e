"""
LLM-generated SEO optimization recommendations.
"""
from typing import List

from .core.errors import CompletionError
from .core.interfaces import CompletionProvider
from .core.models import ExtractedEntity, OptimizationRecommendation, Priority
from .llm import parse_json_response
from .utils import logger

MAX_PROMPT_ENTITIES = 8
SYSTEM_PROMPT = (
    "You are an SEO expert providing actionable optimization recommendations. "
    "Focus on specific, measurable improvements."
)
REQUIRED_FIELDS = ('category', 'recommendation', 'priority', 'impact')


class OptimizationRecommender:
    """Ask a completion provider for page-level optimization advice."""

    def __init__(self, completion_provider: CompletionProvider):
        self.completion_provider = completion_provider

    def build_prompt(self, entities: List[ExtractedEntity], content: str,
                     title: str, url: str) -> str:
        top_entities = sorted(entities, key=lambda e: e.confidence, reverse=True)[:MAX_PROMPT_ENTITIES]
        entity_list = ', '.join(f"{e.entity} ({e.type})" for e in top_entities)
        return (
            "Analyze this content and provide SEO optimization recommendations:\n\n"
            f"URL: {url}\n"
            f"Title: {title}\n"
            f"Content length: {len(content)} characters\n"
            f"Key entities: {entity_list}\n\n"
            "Provide 6-10 specific, actionable recommendations covering:\n"
            "- Content optimization\n"
            "- Technical SEO\n"
            "- Keyword strategy\n"
            "- User experience\n"
            "- Structure improvements\n\n"
            "Return ONLY a JSON array with this format (no markdown, no code blocks, just pure JSON):\n"
            '[{"category": "Content|Technical|Keywords|UX|Structure", "recommendation": '
            '"specific action", "priority": "high|medium|low", "impact": "expected result"}]'
        )

    def recommend(self, entities: List[ExtractedEntity], content: str,
                  title: str, url: str) -> List[OptimizationRecommendation]:
        """Recommendations, or an empty list when the request or parsing fails."""
        try:
            reply = self.completion_provider.complete(
                self.build_prompt(entities, content, title, url),
                system=SYSTEM_PROMPT, temperature=0.4, max_tokens=800,
            )
        except CompletionError as e:
            logger.warning(f"Optimization recommendations failed: {e}")
            return []

        parsed = parse_json_response(reply, expect=list)
        if not parsed.ok:
            logger.warning("Failed to parse optimization recommendations as JSON")
            return []

        recommendations = []
        for item in parsed.value:
            if not isinstance(item, dict) or not all(item.get(f) for f in REQUIRED_FIELDS):
                continue
            try:
                priority = Priority(str(item['priority']).strip().lower())
            except ValueError:
                continue
            recommendations.append(OptimizationRecommendation(
                category=str(item['category']),
                recommendation=str(item['recommendation']),
                priority=priority,
                impact=str(item['impact']),
            ))
        return recommendations
