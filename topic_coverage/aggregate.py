"""
Category score aggregation over query matches.

Scores round halves up (12.5 -> 13, 13.5 -> 14).
"""
import math
from typing import Dict, List

from .core.models import CategoryScore, CompetitorResult, QueryMatch, RadarPoint


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def calculate_category_scores(matches: List[QueryMatch]) -> List[CategoryScore]:
    """Group matches by category in first-seen order and score each group."""
    groups: Dict[str, List[QueryMatch]] = {}
    for match in matches:
        groups.setdefault(match.category, []).append(match)

    scores = []
    for category, group in groups.items():
        mean_similarity = sum(m.similarity for m in group) / len(group)
        scores.append(CategoryScore(
            category=category,
            score=round_half_up(mean_similarity * 100),
            matched_queries=sum(1 for m in group if m.matched),
            total_queries=len(group),
        ))
    return scores


def overall_score(category_scores: List[CategoryScore]) -> int:
    """Rounded mean of category scores; 0 when there are none."""
    if not category_scores:
        return 0
    return round_half_up(sum(s.score for s in category_scores) / len(category_scores))


def generate_radar_data(target_scores: List[CategoryScore],
                        competitor_results: List[CompetitorResult]) -> List[RadarPoint]:
    """One radar point per target category.

    A competitor lacking the category counts as 0 towards the average.
    """
    points = []
    for target in target_scores:
        competitor_scores = [c.score_for(target.category) or 0 for c in competitor_results]
        competitor_avg = (
            round_half_up(sum(competitor_scores) / len(competitor_scores)) if competitor_scores else 0
        )
        points.append(RadarPoint(
            category=target.category,
            target_score=target.score,
            competitor_avg=competitor_avg,
        ))
    return points
