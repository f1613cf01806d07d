"""
Contraindication screening.

GOVERNANCE:
- Every rule is evaluated; results are unioned in rule order
- Response-derived entries are NOT deduplicated: two pain questions
  answered a/b produce two entries, one per question
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Iterable, Mapping, Sequence

from api.models.assessment import (
    Contraindication,
    ContraindicationSeverity,
    Question,
    Response,
)
from api.models.patient import Patient

CONCERNING_SCORE = 2  # a or b


class ContraindicationRule(ABC):
    """One independently evaluable screening rule."""

    @abstractmethod
    def evaluate(
        self,
        patient: Patient,
        questions: Sequence[Question],
        responses: Mapping[str, Response],
    ) -> list[Contraindication]:
        """Return the contraindications this rule finds (possibly none)."""


@dataclass(frozen=True)
class MinimumAgeRule(ContraindicationRule):
    """Absolute: patients below the clinical age floor."""

    minimum_age: int = 12

    def evaluate(self, patient, questions, responses):
        if patient.age >= self.minimum_age:
            return []
        return [
            Contraindication(
                severity=ContraindicationSeverity.ABSOLUTE,
                condition=f"Children Under {self.minimum_age} Years",
                reason=(
                    "Developing nervous system, unable to communicate "
                    "discomfort effectively"
                ),
            )
        ]


@dataclass(frozen=True)
class ResponseTopicRule(ContraindicationRule):
    """Relative: a concerning answer to a question about a tracked topic."""

    topic: str
    condition: str
    reason: str
    max_score: int = CONCERNING_SCORE

    def evaluate(self, patient, questions, responses):
        found = []
        for question in questions:
            response = responses.get(question.question_id)
            if response is None or response.score > self.max_score:
                continue
            if self.topic in question.text.lower():
                found.append(
                    Contraindication(
                        severity=ContraindicationSeverity.RELATIVE,
                        condition=self.condition,
                        reason=self.reason,
                        question_id=question.question_id,
                    )
                )
        return found


def default_rules(minimum_age: int = 12) -> list[ContraindicationRule]:
    return [
        MinimumAgeRule(minimum_age=minimum_age),
        ResponseTopicRule(
            topic="pain",
            condition="Severe Pain Condition",
            reason="Requires medical evaluation before therapy",
        ),
        ResponseTopicRule(
            topic="medical conditions",
            condition="Multiple Serious Medical Conditions",
            reason="Requires physician clearance",
        ),
    ]


class ContraindicationDetector:
    """Runs every rule and concatenates the findings."""

    def __init__(self, rules: Iterable[ContraindicationRule] | None = None):
        self.rules = list(rules) if rules is not None else default_rules()

    def detect(
        self,
        patient: Patient,
        questions: Iterable[Question],
        responses: Mapping[str, Response],
    ) -> list[Contraindication]:
        """
        Screen a patient and their responses.

        Args:
            patient: Patient attributes (age is used by the structural rule)
            questions: Question bank
            responses: Latest response per question id

        Returns:
            Contraindications in rule order, then question order
        """
        ordered = sorted(questions, key=lambda q: q.order_position)
        found: list[Contraindication] = []
        for rule in self.rules:
            found.extend(rule.evaluate(patient, ordered, responses))
        return found


def requires_clearance(contraindications: Iterable[Contraindication]) -> bool:
    """Absolute contraindications gate therapy behind clinical clearance."""
    return any(
        c.severity == ContraindicationSeverity.ABSOLUTE for c in contraindications
    )
