"""
Overall extraction confidence from per-field confidences.

Pure functions: a weighted mean over the fields, fixed penalties for weak
critical fields, then multiplicative boosts for cross-field consistency.
"""

from .receipt_types import FieldConfidence, QualityTier

FIELD_WEIGHTS = {
    "total": 0.30,
    "line_items": 0.25,
    "vendor": 0.20,
    "date": 0.15,
    "document_type": 0.10,
}

# Applied when the field is missing or below WEAK_FIELD
FIELD_PENALTIES = {
    "vendor": 0.10,
    "total": 0.15,
    "date": 0.05,
}
WEAK_FIELD = 0.5

MATH_BOOST = 1.10
LAYOUT_BOOST = 1.05
SPATIAL_BOOST = 1.03

MAX_OVERALL = 0.95

QUALITY_TIERS: list[tuple[float, QualityTier]] = [
    (0.8, "excellent"),
    (0.65, "good"),
    (0.45, "fair"),
]


def calculate_overall_confidence(
    fields: FieldConfidence,
    math_consistent: bool = False,
    layout_consistent: bool = False,
    spatial_proximity: bool = False,
) -> float:
    """
    Combine field confidences into one score in [0, 0.95].

    Args:
        fields: Per-field confidences (0 means the field was not found)
        math_consistent: subtotal + tax reconciles with total
        layout_consistent: line item totals reconcile with subtotal/total
        spatial_proximity: total was read next to its label
    """
    values = fields.model_dump()
    score = sum(values[name] * weight for name, weight in FIELD_WEIGHTS.items())

    for name, penalty in FIELD_PENALTIES.items():
        if values[name] < WEAK_FIELD:
            score -= penalty

    if math_consistent:
        score *= MATH_BOOST
    if layout_consistent:
        score *= LAYOUT_BOOST
    if spatial_proximity:
        score *= SPATIAL_BOOST

    return round(max(0.0, min(score, MAX_OVERALL)), 4)


def quality_tier(score: float) -> QualityTier:
    for threshold, tier in QUALITY_TIERS:
        if score >= threshold:
            return tier
    return "poor"
