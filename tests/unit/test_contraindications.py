"""
Unit Tests for Contraindication Screening
"""
from datetime import datetime, timezone

import pytest

from api.models.assessment import ContraindicationSeverity, Response
from api.models.patient import Patient
from engine.contraindications import (
    ContraindicationDetector,
    MinimumAgeRule,
    ResponseTopicRule,
    requires_clearance,
)
from engine.scoring import letter_to_score


def answers(**letters):
    return {
        qid: Response(
            session_id="s-1",
            question_id=qid,
            letter=letter,
            score=letter_to_score(letter),
            recorded_at=datetime(2026, 10, 19, tzinfo=timezone.utc),
        )
        for qid, letter in letters.items()
    }


def make_patient(age):
    return Patient(patient_id="p-1", clinic_id="c-1", age=age)


class TestAgeRule:
    def test_child_is_absolute(self, questions):
        found = ContraindicationDetector().detect(make_patient(8), questions, {})

        assert len(found) == 1
        assert found[0].severity == ContraindicationSeverity.ABSOLUTE
        assert found[0].condition == "Children Under 12 Years"
        assert requires_clearance(found)

    def test_child_flagged_regardless_of_answers(self, questions):
        found = ContraindicationDetector().detect(
            make_patient(8), questions, answers(phy_01="e", men_01="e")
        )
        assert any(c.condition == "Children Under 12 Years" for c in found)

    def test_twelve_is_allowed(self, questions):
        assert ContraindicationDetector().detect(make_patient(12), questions, {}) == []

    def test_custom_minimum_age(self, questions):
        detector = ContraindicationDetector([MinimumAgeRule(minimum_age=16)])
        found = detector.detect(make_patient(14), questions, {})
        assert found[0].condition == "Children Under 16 Years"


class TestResponseRules:
    """Relative contraindications from concerning answers."""

    @pytest.mark.parametrize("letter", ["a", "b"])
    def test_low_pain_answer_flags(self, questions, letter):
        found = ContraindicationDetector().detect(make_patient(40), questions, answers(phy_01=letter))

        assert [c.condition for c in found] == ["Severe Pain Condition"]
        assert found[0].severity == ContraindicationSeverity.RELATIVE
        assert found[0].question_id == "phy_01"
        assert not requires_clearance(found)

    @pytest.mark.parametrize("letter", ["c", "d", "e"])
    def test_higher_answers_do_not_flag(self, questions, letter):
        found = ContraindicationDetector().detect(
            make_patient(40), questions, answers(phy_01=letter, his_01=letter)
        )
        assert found == []

    def test_one_entry_per_question(self, questions):
        """Two pain questions answered low give two entries."""
        found = ContraindicationDetector().detect(
            make_patient(40), questions, answers(phy_01="a", his_03="b")
        )
        assert [c.question_id for c in found] == ["phy_01", "his_03"]

    def test_rule_order_then_question_order(self, questions):
        found = ContraindicationDetector().detect(
            make_patient(10), questions, answers(his_01="a", his_03="a", phy_01="b")
        )

        assert [(c.condition, c.question_id) for c in found] == [
            ("Children Under 12 Years", None),
            ("Severe Pain Condition", "phy_01"),
            ("Severe Pain Condition", "his_03"),
            ("Multiple Serious Medical Conditions", "his_01"),
        ]

    def test_custom_topic_rule(self, questions):
        rule = ResponseTopicRule(topic="sleep", condition="Sleep Disorder", reason="Refer")
        found = ContraindicationDetector([rule]).detect(make_patient(30), questions, answers(men_02="a"))
        assert found[0].condition == "Sleep Disorder"


def test_requires_clearance_empty():
    assert requires_clearance([]) is False
