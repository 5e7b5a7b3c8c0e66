from __future__ import annotations

from collections.abc import Mapping
from decimal import ROUND_HALF_UP, Decimal

from guardian.models import AnalysisResult, Category

CATEGORY_WEIGHTS: dict[Category, Decimal] = {
    Category.SECURITY: Decimal("0.4"),
    Category.QUALITY: Decimal("0.3"),
    Category.COMPLIANCE: Decimal("0.2"),
    Category.DOCUMENTATION: Decimal("0.1"),
}
DEFAULT_WEIGHT = Decimal("0.1")


def category_weight(category: Category) -> Decimal:
    return CATEGORY_WEIGHTS.get(category, DEFAULT_WEIGHT)


def reduce_score(per_category: Mapping[Category, AnalysisResult]) -> int:
    """Collapse per-category results into one 0-100 score.

    Only successful results that carry a score participate, and the weighted
    mean is normalised over the participating weight, so failed or unrequested
    categories do not drag the score down. Arithmetic is exact and rounds half
    up (80.5 -> 81).
    """
    total = Decimal(0)
    weight_sum = Decimal(0)
    for category, result in per_category.items():
        if not result.ok or result.score is None:
            continue
        weight = category_weight(category)
        total += Decimal(str(result.score)) * weight
        weight_sum += weight

    if weight_sum <= 0:
        return 0
    score = int((total / weight_sum).quantize(Decimal(1), rounding=ROUND_HALF_UP))
    return min(100, max(0, score))
