import pytest

from dispatchpilot.services.recommendations.types import ScoreBreakdown
from dispatchpilot.services.recommendations.rationale import (
    MAX_RATIONALE_LENGTH,
    describe_availability,
    describe_distance,
    describe_rating,
    generate_rationale,
    primary_factor,
    truncate,
)


class TestDescriptors:
    @pytest.mark.parametrize("score,expected", [(95, "excellent"), (80, "excellent"), (60, "good"), (40, "moderate"), (39.9, "limited")])
    def test_availability_buckets(self, score, expected):
        assert describe_availability(score) == expected

    @pytest.mark.parametrize("score,expected", [(90, "excellent"), (75, "strong"), (60, "good"), (50, "average"), (49, "below average")])
    def test_rating_buckets(self, score, expected):
        assert describe_rating(score) == expected

    @pytest.mark.parametrize("score,expected", [(80, "very close"), (60, "close"), (40, "moderate"), (10, "distant")])
    def test_distance_buckets(self, score, expected):
        assert describe_distance(score) == expected


class TestPrimaryFactor:
    def test_highest_wins(self):
        assert primary_factor(ScoreBreakdown(availability=40, rating=85, distance=60)) == ("rating", 85)

    def test_tie_goes_to_earlier_factor(self):
        assert primary_factor(ScoreBreakdown(availability=70, rating=70, distance=70))[0] == "availability"


class TestGenerateRationale:
    def test_high_availability_template(self):
        text = generate_rationale(ScoreBreakdown(availability=95, rating=90, distance=40), 82.0)
        assert text == "Excellent availability (95%) with excellent rating and moderate distance."

    def test_high_rating_template(self):
        text = generate_rationale(ScoreBreakdown(availability=50, rating=92, distance=70), 75.0)
        assert text == "Top-rated contractor (92%) with moderate availability and close distance."

    def test_high_distance_template(self):
        text = generate_rationale(ScoreBreakdown(availability=30, rating=55, distance=88), 60.0)
        assert text == "Very close location (very close) with average rating and limited availability."

    def test_good_availability_template(self):
        text = generate_rationale(ScoreBreakdown(availability=70, rating=55, distance=30), 50.0)
        assert text == "Good availability (70%) and average rating. Distant distance."

    def test_good_rating_template(self):
        text = generate_rationale(ScoreBreakdown(availability=20, rating=78, distance=30), 50.0)
        assert text == "Strong contractor (78%) with limited availability."

    def test_balanced_lists_factors_at_or_above_50(self):
        text = generate_rationale(ScoreBreakdown(availability=55, rating=52, distance=30), 46.0)
        assert text == "Balanced candidate: moderate availability, average rating. Overall score 46%."

    def test_balanced_without_qualifying_factor(self):
        text = generate_rationale(ScoreBreakdown(availability=20, rating=30, distance=10), 21.4)
        assert text == "Balanced candidate with overall score 21%."

    def test_unknown_distance_named(self):
        text = generate_rationale(ScoreBreakdown(availability=90, rating=80, distance=0, distance_unknown=True), 70.0)
        assert "unknown distance" in text

    def test_deterministic(self):
        b = ScoreBreakdown(availability=63.2, rating=71.9, distance=48.0)
        assert generate_rationale(b, 61.3) == generate_rationale(b, 61.3)

    def test_length_bounded_for_all_breakdowns(self):
        for availability in range(0, 101, 10):
            for rating in range(0, 101, 10):
                for distance in range(0, 101, 10):
                    b = ScoreBreakdown(availability=availability, rating=rating, distance=distance)
                    assert len(generate_rationale(b, 100.0)) <= MAX_RATIONALE_LENGTH


class TestTruncate:
    def test_short_text_unchanged(self):
        assert truncate("Good availability.") == "Good availability."

    def test_long_text_ends_with_ellipsis(self):
        result = truncate("word " * 60)
        assert len(result) <= MAX_RATIONALE_LENGTH
        assert result.endswith("...")

    def test_number_at_boundary_not_split(self):
        text = "x" * 190 + " 123456789 tail"
        assert truncate(text) == "x" * 190 + "..."
