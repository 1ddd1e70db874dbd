"""
Template-based rationale text for a score breakdown.
Deterministic: same breakdown and final score, same sentence.
"""

from .types import ScoreBreakdown


MAX_RATIONALE_LENGTH = 200
ELLIPSIS = "..."


def describe_availability(score: float) -> str:
    if score >= 80:
        return "excellent"
    if score >= 60:
        return "good"
    if score >= 40:
        return "moderate"
    return "limited"


def describe_rating(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 75:
        return "strong"
    if score >= 60:
        return "good"
    if score >= 50:
        return "average"
    return "below average"


def describe_distance(score: float) -> str:
    if score >= 80:
        return "very close"
    if score >= 60:
        return "close"
    if score >= 40:
        return "moderate"
    return "distant"


def _distance_phrase(breakdown: ScoreBreakdown) -> str:
    if breakdown.distance_unknown:
        return "unknown"
    return describe_distance(breakdown.distance)


def primary_factor(breakdown: ScoreBreakdown) -> tuple[str, float]:
    """Highest of the three factor scores; earlier factor wins a tie."""
    factors = [
        ("availability", breakdown.availability),
        ("rating", breakdown.rating),
        ("distance", breakdown.distance),
    ]
    return max(factors, key=lambda f: f[1])


def _high_score(factor: str, score: float, b: ScoreBreakdown) -> str:
    if factor == "availability":
        return (f"Excellent availability ({score:.0f}%) with {describe_rating(b.rating)} rating "
                f"and {_distance_phrase(b)} distance.")
    if factor == "rating":
        return (f"Top-rated contractor ({score:.0f}%) with {describe_availability(b.availability)} "
                f"availability and {_distance_phrase(b)} distance.")
    return (f"Very close location ({describe_distance(b.distance)}) with {describe_rating(b.rating)} "
            f"rating and {describe_availability(b.availability)} availability.")


def _good_score(factor: str, score: float, b: ScoreBreakdown) -> str:
    if factor == "availability":
        return (f"Good availability ({score:.0f}%) and {describe_rating(b.rating)} rating. "
                f"{_distance_phrase(b).capitalize()} distance.")
    if factor == "rating":
        return (f"{describe_rating(b.rating).capitalize()} contractor ({score:.0f}%) with "
                f"{describe_availability(b.availability)} availability.")
    return f"Close location ({describe_distance(b.distance)}) with {describe_rating(b.rating)} rating."


def _balanced(b: ScoreBreakdown, final_score: float) -> str:
    parts = []
    if b.availability >= 50:
        parts.append(f"{describe_availability(b.availability)} availability")
    if b.rating >= 50:
        parts.append(f"{describe_rating(b.rating)} rating")
    if b.distance >= 50:
        parts.append(f"{describe_distance(b.distance)} distance")

    if not parts:
        return f"Balanced candidate with overall score {final_score:.0f}%."
    return f"Balanced candidate: {', '.join(parts)}. Overall score {final_score:.0f}%."


def _is_number_char(ch: str) -> bool:
    return ch.isdigit() or ch in ".%"


def truncate(text: str, limit: int = MAX_RATIONALE_LENGTH) -> str:
    """Trim to limit with a trailing ellipsis, backing off so a number like 82% is never cut."""
    if len(text) <= limit:
        return text
    cut = limit - len(ELLIPSIS)
    while cut > 0 and _is_number_char(text[cut - 1]) and _is_number_char(text[cut]):
        cut -= 1
    return text[:cut].rstrip() + ELLIPSIS


def generate_rationale(breakdown: ScoreBreakdown, final_score: float) -> str:
    """Explain a score in at most MAX_RATIONALE_LENGTH characters."""
    factor, score = primary_factor(breakdown)

    if score >= 80:
        text = _high_score(factor, score, breakdown)
    elif score >= 60:
        text = _good_score(factor, score, breakdown)
    else:
        text = _balanced(breakdown, final_score)

    return truncate(text)
