"""
Unit Tests for Therapy Matching

Constitutional seeding, domain matching, escalation, dedup, ordering and the
fallback set.
"""
import pytest

from api.models.assessment import AssessmentCategory, CategoryScoreSet
from api.models.iris import ConstitutionalType
from api.models.therapy import TherapyPriority
from engine.therapy import (
    CONSTITUTIONAL_THERAPIES,
    DEFAULT_WELLNESS_CODES,
    THERAPY_CATALOGUE,
    TherapyMatcher,
    search_terms,
)

C = AssessmentCategory


def score_set(**scores):
    categories = {C(name): value for name, value in scores.items()}
    return CategoryScoreSet(
        categories=categories,
        answered_counts={c: (3 if c in categories and categories[c] > 0 else 0) for c in C},
    )


@pytest.fixture
def matcher():
    return TherapyMatcher()


class TestProblemDomains:
    def test_below_threshold_worst_first(self, matcher):
        scores = score_set(physical=65, mental=40, lifestyle=90, environment=65, history=70)
        assert matcher.problem_domains(scores) == [
            ("mental", 40),
            ("physical", 65),
            ("environment", 65),
        ]

    def test_unanswered_categories_ignored(self, matcher):
        assert matcher.problem_domains(CategoryScoreSet()) == []


class TestMatch:
    """Tests for TherapyMatcher.match."""

    def test_fallback_when_nothing_qualifies(self, matcher):
        """All categories unanswered and no constitution -> default set."""
        result = matcher.match(CategoryScoreSet())

        assert [r.code for r in result] == DEFAULT_WELLNESS_CODES
        assert result

    def test_fallback_for_healthy_scores(self, matcher):
        result = matcher.match(score_set(physical=90, mental=95, lifestyle=80, environment=85, history=100))
        assert [r.code for r in result] == DEFAULT_WELLNESS_CODES

    def test_constitutional_seeding_only(self, matcher):
        result = matcher.match(CategoryScoreSet(), ConstitutionalType.LYMPHATIC)

        codes = [r.code for r in result]
        assert set(codes) == set(CONSTITUTIONAL_THERAPIES[ConstitutionalType.LYMPHATIC])
        # OZN-001 has base priority 1, the other two 2 and 3
        assert codes == ["OZN-001", "LGT-003", "SAU-001"]

    @pytest.mark.parametrize("constitution", [ConstitutionalType.NEUROGENIC, ConstitutionalType.POLYGLANDULAR])
    def test_unlisted_constitution_seeds_default_codes(self, matcher, constitution):
        result = matcher.match(score_set(physical=90, mental=95, lifestyle=80, environment=85, history=100), constitution)

        assert [r.code for r in result] == DEFAULT_WELLNESS_CODES
        assert all(constitution.value in r.description for r in result)

    def test_domain_matching_uses_substring_tags(self, matcher):
        codes = matcher.matching_codes("sleep")
        assert codes == ["FRQ-001", "FRQ-002", "LGT-002"]

    def test_unknown_domain_searches_its_own_name(self):
        assert search_terms("Liver") == ["liver"]

    def test_severe_domain_escalates_priority(self, matcher):
        """Mental at 20 is severe: LGT-002 goes from 2 to 1, HBO-001 from 3 to 2."""
        result = matcher.match(score_set(mental=20))
        by_code = {r.code: r for r in result}

        assert by_code["LGT-002"].priority == TherapyPriority.MANDATORY
        assert by_code["HBO-001"].priority == TherapyPriority.RECOMMENDED

    def test_moderate_domain_keeps_base_priority(self, matcher):
        result = matcher.match(score_set(mental=50))
        by_code = {r.code: r for r in result}

        assert by_code["LGT-002"].priority == TherapyPriority.RECOMMENDED

    def test_first_occurrence_wins(self, matcher):
        """SAU-001 seeded by the constitution keeps its base priority."""
        result = matcher.match(score_set(history=10), ConstitutionalType.LYMPHATIC)
        by_code = {r.code: r for r in result}

        assert by_code["SAU-001"].priority == TherapyPriority.OPTIONAL
        assert by_code["SAU-001"].target_domain is None

    def test_sorted_and_truncated(self, matcher):
        scores = score_set(physical=20, mental=20, lifestyle=20, environment=20, history=20)
        result = matcher.match(scores, ConstitutionalType.MIXED)

        assert len(result) == 6
        priorities = [int(r.priority) for r in result]
        assert priorities == sorted(priorities)

    @pytest.mark.parametrize("constitution", [None, *ConstitutionalType])
    @pytest.mark.parametrize("value", [0, 25, 50, 69, 70, 100])
    def test_never_empty_never_duplicate_never_over_six(self, matcher, constitution, value):
        scores = score_set(physical=value, mental=value, lifestyle=value, environment=value, history=value)
        result = matcher.match(scores, constitution)

        codes = [r.code for r in result]
        assert 1 <= len(codes) <= 6
        assert len(codes) == len(set(codes))

    def test_iris_domains_follow_categories(self, matcher):
        result = matcher.match(CategoryScoreSet(), iris_domains=["digestive"])
        codes = [r.code for r in result]

        assert "IVT-002" in codes
        assert all(r.target_domain == "digestive" for r in result)

    def test_recommendations_carry_protocol_and_label(self, matcher):
        result = matcher.match(score_set(physical=40))
        first = result[0]

        assert first.protocol.total_sessions == 10
        assert first.protocol.frequency == "2-3 times per week"
        assert first.protocol.session_minutes == THERAPY_CATALOGUE[first.code].duration_minutes
        assert first.priority_label == "MANDATORY-PRIMARY"

    def test_custom_max_results(self):
        result = TherapyMatcher(max_results=2).match(score_set(physical=10, mental=10))
        assert len(result) == 2
