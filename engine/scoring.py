"""
Response scoring.

GOVERNANCE:
- Letters map a=1 (worst) .. e=5 (best); anything else scores a neutral 3
- Unanswered categories score 0 and still count toward the overall mean
"""

import math
from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable, Mapping

from api.models.assessment import (
    AssessmentCategory,
    CategoryScoreSet,
    Question,
    Response,
)

LETTER_SCORES = {"a": 1, "b": 2, "c": 3, "d": 4, "e": 5}
NEUTRAL_SCORE = 3
MAX_RESPONSE_SCORE = 5


def round_half_up(value: float) -> int:
    """Round .5 upward (2.5 -> 3, -2.5 -> -2) rather than to even."""
    return int(math.floor(value + 0.5))


def round_to_tenth(value: float) -> float:
    """One decimal place, ties away from zero (1.25 -> 1.3, -1.25 -> -1.3)."""
    return float(Decimal(str(value)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def letter_to_score(letter: str) -> int:
    """Convert an answer letter to its 1-5 score."""
    if not isinstance(letter, str):
        return NEUTRAL_SCORE
    return LETTER_SCORES.get(letter.strip().lower(), NEUTRAL_SCORE)


def latest_responses(responses: Iterable[Response]) -> dict[str, Response]:
    """Latest response per question; a re-answer supersedes earlier ones."""
    latest: dict[str, Response] = {}
    for response in sorted(responses, key=lambda r: r.recorded_at):
        latest[response.question_id] = response
    return latest


class ScoringEngine:
    """Turns a response set into weighted per-category percentages."""

    def compute(
        self,
        questions: Iterable[Question],
        responses: Mapping[str, Response] | Iterable[Response],
    ) -> CategoryScoreSet:
        """
        Score a session.

        Args:
            questions: The question bank (any order)
            responses: Responses keyed by question id, or an iterable of
                responses (the latest per question is used)

        Returns:
            CategoryScoreSet covering all five categories
        """
        if not isinstance(responses, Mapping):
            responses = latest_responses(responses)

        totals = {category: 0.0 for category in AssessmentCategory}
        weights = {category: 0.0 for category in AssessmentCategory}
        counts = {category: 0 for category in AssessmentCategory}

        for question in questions:
            response = responses.get(question.question_id)
            if response is None:
                continue
            totals[question.category] += response.score * question.weight
            weights[question.category] += question.weight
            counts[question.category] += 1

        categories = {}
        for category in AssessmentCategory:
            if counts[category] == 0:
                categories[category] = 0
                continue
            max_possible = MAX_RESPONSE_SCORE * weights[category]
            categories[category] = round_half_up(100 * totals[category] / max_possible)

        overall = round_half_up(sum(categories.values()) / len(AssessmentCategory))

        return CategoryScoreSet(
            categories=categories,
            overall_score=overall,
            answered_counts=counts,
        )
