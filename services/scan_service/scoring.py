import math
from typing import Mapping

CATEGORY_WEIGHTS: dict[str, float] = {
    "seo": 0.18,
    "headings": 0.08,
    "images": 0.08,
    "links": 0.12,
    "visual": 0.08,
    "performance": 0.13,
    "accessibility": 0.08,
    "responsive": 0.08,
    "security": 0.17,
}


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_overall_score(sub_scores: Mapping[str, int | float]) -> int:
    """Weighted mean of the sub-scores that were produced.

    Weights are renormalized over the categories present, so a disabled or
    failed checker never contributes a zero. Returns 0 when nothing ran.
    """
    weighted = 0.0
    total_weight = 0.0
    for category, score in sub_scores.items():
        weight = CATEGORY_WEIGHTS.get(category)
        if weight is None or score is None:
            continue
        weighted += weight * score
        total_weight += weight

    if total_weight == 0:
        return 0
    return round_half_up(weighted / total_weight)
