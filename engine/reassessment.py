"""
Reassessment comparison.

Snapshots are on the problem-severity scale (higher = worse), so a drop in
score is an improvement. Wellness score sets from the questionnaire are
converted with severity_snapshot() before comparison.
"""

from typing import Mapping, Optional

from api.models.assessment import AssessmentCategory, CategoryScoreSet
from api.models.reassessment import ComparisonResult, DomainComparison
from engine.scoring import round_half_up, round_to_tenth

DOMAIN_LABELS = {
    AssessmentCategory.PHYSICAL.value: "Physical Health",
    AssessmentCategory.MENTAL.value: "Mental Wellbeing",
    AssessmentCategory.LIFESTYLE.value: "Lifestyle",
    AssessmentCategory.ENVIRONMENT.value: "Environment",
    AssessmentCategory.HISTORY.value: "Medical History",
    "sleep": "Sleep Quality",
    "stress": "Stress Management",
    "cardiovascular": "Cardiovascular Health",
    "joint": "Joint Health",
    "digestive": "Digestive Wellness",
    "kidney": "Kidney Function",
    "energy": "Energy Levels",
    "metabolic": "Metabolic Health",
}


def severity_snapshot(scores: CategoryScoreSet) -> dict[str, float]:
    """Problem-severity view (100 - wellness) of the answered categories."""
    return {
        category.value: float(100 - scores.score_for(category))
        for category in AssessmentCategory
        if scores.is_scored(category)
    }


class ReassessmentComparator:
    """Classifies each domain as improved, declined or stable."""

    def __init__(self, stable_band: int = 10):
        self.stable_band = stable_band

    def compare(
        self,
        previous: Optional[Mapping[str, float]],
        current: Optional[Mapping[str, float]],
    ) -> Optional[ComparisonResult]:
        """
        Diff two severity snapshots.

        Returns None when either snapshot is missing. A domain absent from
        the current snapshot is treated as unchanged.
        """
        if previous is None or current is None:
            return None

        result = ComparisonResult()
        total = 0.0

        for domain, previous_score in previous.items():
            current_score = current.get(domain, previous_score)
            change = previous_score - current_score
            percent = round_to_tenth(change / previous_score * 100) if previous_score else 0.0

            entry = DomainComparison(
                domain=domain,
                label=DOMAIN_LABELS.get(domain, domain),
                previous_score=previous_score,
                current_score=current_score,
                change=change,
                percent_change=percent,
            )
            if change > self.stable_band:
                result.improvements.append(entry)
            elif change < -self.stable_band:
                result.declines.append(entry)
            else:
                result.stable.append(entry)
            total += change

        if previous:
            result.overall_improvement = round_half_up(total / len(previous))
        return result
