"""
Unit Tests for Response Scoring

Letter mapping, weighted category percentages and the overall mean.
"""
from datetime import datetime, timedelta, timezone

import pytest

from api.models.assessment import AssessmentCategory, Question, Response
from engine.scoring import (
    ScoringEngine,
    latest_responses,
    letter_to_score,
    round_half_up,
    round_to_tenth,
)

T0 = datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc)


def make_questions(category, count, weight=1.0, prefix="q"):
    return [
        Question(
            question_id=f"{prefix}{i}",
            text=f"Question {i}",
            category=category,
            weight=weight,
            order_position=i,
        )
        for i in range(count)
    ]


def respond(question_id, letter, offset=0):
    return Response(
        session_id="s-1",
        question_id=question_id,
        letter=letter,
        score=letter_to_score(letter),
        recorded_at=T0 + timedelta(seconds=offset),
    )


class TestLetterScores:
    """Tests for letter-to-score conversion."""

    @pytest.mark.parametrize("letter,score", [("a", 1), ("b", 2), ("c", 3), ("d", 4), ("e", 5)])
    def test_known_letters(self, letter, score):
        assert letter_to_score(letter) == score

    def test_uppercase_and_whitespace(self):
        assert letter_to_score(" E ") == 5

    @pytest.mark.parametrize("letter", ["z", "", "yes", None])
    def test_unknown_defaults_to_neutral(self, letter):
        assert letter_to_score(letter) == 3


class TestRounding:
    def test_half_rounds_up(self):
        assert round_half_up(62.5) == 63
        assert round_half_up(2.5) == 3

    def test_negative_half_rounds_toward_positive(self):
        assert round_half_up(-2.5) == -2

    def test_regular_values(self):
        assert round_half_up(10.4) == 10
        assert round_half_up(-10.6) == -11

    def test_tenths_tie_away_from_zero(self):
        assert round_to_tenth(0.25) == 0.3
        assert round_to_tenth(-0.25) == -0.3
        assert round_to_tenth(12.35) == 12.4

    def test_tenths_regular_values(self):
        assert round_to_tenth(33.333333) == 33.3
        assert round_to_tenth(-75.0) == -75.0


class TestScoringEngine:
    """Tests for ScoringEngine.compute."""

    def test_all_worst_answers_score_twenty(self):
        """Five equally weighted 'a' answers in one category give 20%."""
        questions = make_questions(AssessmentCategory.PHYSICAL, 5)
        responses = [respond(q.question_id, "a") for q in questions]

        scores = ScoringEngine().compute(questions, responses)

        assert scores.categories[AssessmentCategory.PHYSICAL] == 20

    def test_unanswered_category_is_zero_and_counts_in_mean(self):
        questions = make_questions(AssessmentCategory.PHYSICAL, 2, prefix="p") + make_questions(
            AssessmentCategory.MENTAL, 2, prefix="m"
        )
        responses = [respond("p0", "e"), respond("p1", "e")]

        scores = ScoringEngine().compute(questions, responses)

        assert scores.categories[AssessmentCategory.PHYSICAL] == 100
        for category in AssessmentCategory:
            if category != AssessmentCategory.PHYSICAL:
                assert scores.categories[category] == 0
        assert set(scores.categories) == set(AssessmentCategory)
        assert scores.overall_score == 20  # 100 / 5 categories

    def test_weights_apply(self, questions):
        """phy_01 (weight 1.5) answered a, phy_02 (weight 1.0) answered e."""
        responses = [respond("phy_01", "a"), respond("phy_02", "e")]

        scores = ScoringEngine().compute(questions, responses)

        # (1 * 1.5 + 5 * 1.0) / (5 * 2.5) = 52%
        assert scores.categories[AssessmentCategory.PHYSICAL] == 52
        assert scores.answered_counts[AssessmentCategory.PHYSICAL] == 2
        assert scores.overall_score == 10

    def test_half_percent_rounds_up(self):
        questions = make_questions(AssessmentCategory.LIFESTYLE, 8)
        letters = ["d", "d", "c", "c", "c", "c", "c", "b"]  # sum 25 of 40
        responses = [respond(q.question_id, l) for q, l in zip(questions, letters)]

        scores = ScoringEngine().compute(questions, responses)

        assert scores.categories[AssessmentCategory.LIFESTYLE] == 63

    def test_latest_response_wins(self):
        questions = make_questions(AssessmentCategory.MENTAL, 1)
        responses = [respond("q0", "e", offset=10), respond("q0", "a", offset=0)]

        scores = ScoringEngine().compute(questions, responses)

        assert scores.categories[AssessmentCategory.MENTAL] == 100

    @pytest.mark.parametrize("letter", ["a", "b", "c", "d", "e", "x"])
    def test_percentages_in_range(self, questions, letter):
        responses = [respond(q.question_id, letter) for q in questions]

        scores = ScoringEngine().compute(questions, responses)

        assert all(0 <= v <= 100 for v in scores.categories.values())
        assert 0 <= scores.overall_score <= 100

    def test_responses_to_unknown_questions_ignored(self, questions):
        scores = ScoringEngine().compute(questions, [respond("not_a_question", "e")])
        assert scores.overall_score == 0


def test_latest_responses_keyed_by_question():
    latest = latest_responses(
        [respond("q1", "a", 5), respond("q2", "b", 1), respond("q1", "c", 2)]
    )
    assert latest["q1"].letter == "a"
    assert latest["q2"].letter == "b"
