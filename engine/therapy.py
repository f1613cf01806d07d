"""
Therapy matching.

GOVERNANCE:
- Scores arrive on the wellness scale (0-100, lower = worse)
- A domain is "severe" below severe_threshold and escalates priority by one
- First occurrence of a code wins; never more than max_results, never empty
"""

from typing import Iterable, Optional

from api.models.assessment import AssessmentCategory, CategoryScoreSet
from api.models.iris import ConstitutionalType
from api.models.therapy import (
    ProtocolSchedule,
    TherapyPriority,
    TherapyProtocol,
    TherapyRecommendation,
)


def _protocol(code, name, category, targets, duration, priority) -> TherapyProtocol:
    return TherapyProtocol(
        code=code,
        name=name,
        category=category,
        targets=tuple(targets),
        duration_minutes=duration,
        base_priority=TherapyPriority(priority),
    )


# Declaration order is the match order within a domain.
THERAPY_CATALOGUE: dict[str, TherapyProtocol] = {
    p.code: p
    for p in [
        _protocol("FRQ-001", "Stress Relief Frequency", "Frequency", ["stress", "anxiety", "sleep"], 30, 1),
        _protocol("FRQ-002", "Sleep Optimization Frequency", "Frequency", ["sleep", "insomnia", "circadian"], 45, 1),
        _protocol("FRQ-003", "Energy Enhancement Frequency", "Frequency", ["energy", "fatigue", "vitality"], 30, 2),
        _protocol("LGT-001", "Red Light Therapy", "Light", ["inflammation", "joint", "pain"], 20, 1),
        _protocol("LGT-002", "Blue Light Therapy", "Light", ["skin", "mood", "circadian"], 15, 2),
        _protocol("LGT-003", "Infrared Therapy", "Light", ["circulation", "muscle", "recovery"], 30, 2),
        _protocol("PMF-001", "Joint Recovery PEMF", "PEMF", ["joint", "arthritis", "mobility"], 30, 1),
        _protocol("PMF-002", "Cellular Regeneration PEMF", "PEMF", ["cellular", "recovery", "healing"], 45, 2),
        _protocol("OZN-001", "Immune Boost Ozone", "Ozone", ["immune", "infection", "detox"], 45, 1),
        _protocol("OZN-002", "Oxygen Enhancement", "Ozone", ["oxygen", "energy", "cellular"], 30, 2),
        _protocol("IVT-001", "Myers Cocktail IV", "IV", ["nutrition", "energy", "immune"], 60, 2),
        _protocol("IVT-002", "Glutathione IV", "IV", ["detox", "antioxidant", "liver"], 45, 2),
        _protocol("IVT-003", "Vitamin C IV", "IV", ["immune", "antioxidant", "energy"], 45, 1),
        _protocol("HBO-001", "Hyperbaric Oxygen Session", "Hyperbaric", ["healing", "brain", "oxygen"], 90, 3),
        _protocol("CRY-001", "Whole Body Cryotherapy", "Cryo", ["inflammation", "recovery", "pain"], 3, 2),
        _protocol("SAU-001", "Infrared Sauna Detox", "Sauna", ["detox", "circulation", "relaxation"], 45, 3),
    ]
}

CONSTITUTIONAL_THERAPIES: dict[ConstitutionalType, list[str]] = {
    ConstitutionalType.LYMPHATIC: ["OZN-001", "SAU-001", "LGT-003"],
    ConstitutionalType.HAEMATOGENIC: ["LGT-001", "HBO-001", "IVT-003"],
    ConstitutionalType.BILIARY: ["IVT-002", "OZN-002", "SAU-001"],
    ConstitutionalType.MIXED: ["FRQ-001", "PMF-002", "IVT-001"],
}

DEFAULT_WELLNESS_CODES = ["FRQ-001", "PMF-002"]

DOMAIN_SEARCH_TERMS: dict[str, list[str]] = {
    # Assessment categories
    AssessmentCategory.PHYSICAL.value: ["joint", "pain", "mobility", "muscle", "inflammation"],
    AssessmentCategory.MENTAL.value: ["stress", "anxiety", "sleep", "mood", "brain"],
    AssessmentCategory.LIFESTYLE.value: ["energy", "fatigue", "vitality", "nutrition"],
    AssessmentCategory.ENVIRONMENT.value: ["immune", "detox", "oxygen"],
    AssessmentCategory.HISTORY.value: ["circulation", "cellular", "healing"],
    # Organ-system domains from the iris analysis
    "sleep": ["sleep", "insomnia", "circadian"],
    "stress": ["stress", "anxiety", "relaxation"],
    "cardiovascular": ["circulation", "oxygen", "cellular"],
    "joint": ["joint", "arthritis", "mobility", "pain"],
    "digestive": ["digestive", "detox", "liver"],
    "kidney": ["detox", "cellular", "oxygen"],
    "energy": ["energy", "fatigue", "vitality"],
    "metabolic": ["metabolic", "cellular", "nutrition"],
    "lymphatic": ["lymph", "detox", "immune"],
    "nervous": ["nervous", "stress", "brain"],
}

IRIS_DOMAIN_SCORE = 40


def search_terms(domain: str) -> list[str]:
    key = domain.lower()
    return DOMAIN_SEARCH_TERMS.get(key, [key])


def protocol_schedule(therapy: TherapyProtocol) -> ProtocolSchedule:
    return ProtocolSchedule(session_minutes=therapy.duration_minutes)


class TherapyMatcher:
    """Maps weak domains and constitutional type to ranked therapies."""

    def __init__(
        self,
        threshold: int = 70,
        severe_threshold: int = 30,
        max_results: int = 6,
        catalogue: Optional[dict[str, TherapyProtocol]] = None,
    ):
        self.threshold = threshold
        self.severe_threshold = severe_threshold
        self.max_results = max_results
        self.catalogue = catalogue or THERAPY_CATALOGUE

    def problem_domains(self, scores: CategoryScoreSet) -> list[tuple[str, int]]:
        """Scored categories below threshold, worst first, ties in declaration order."""
        order = list(AssessmentCategory)
        weak = [
            (category, scores.score_for(category))
            for category in order
            if scores.is_scored(category) and scores.score_for(category) < self.threshold
        ]
        weak.sort(key=lambda item: (item[1], order.index(item[0])))
        return [(category.value, score) for category, score in weak]

    def matching_codes(self, domain: str) -> list[str]:
        """Catalogue codes with a target tag containing any search term."""
        terms = search_terms(domain)
        return [
            code
            for code, therapy in self.catalogue.items()
            if any(term in target for target in therapy.targets for term in terms)
        ]

    def match(
        self,
        scores: CategoryScoreSet,
        constitutional_type: Optional[ConstitutionalType] = None,
        iris_domains: Iterable[str] = (),
    ) -> list[TherapyRecommendation]:
        """
        Build the recommendation list.

        Args:
            scores: Category wellness percentages
            constitutional_type: Iris constitutional type, if assessed
            iris_domains: Extra problem domains from the iris organ analysis

        Returns:
            Up to max_results recommendations sorted by priority
        """
        recommendations: dict[str, TherapyRecommendation] = {}

        if constitutional_type is not None:
            codes = CONSTITUTIONAL_THERAPIES.get(constitutional_type, DEFAULT_WELLNESS_CODES)
            for code in codes:
                if code in recommendations or code not in self.catalogue:
                    continue
                therapy = self.catalogue[code]
                recommendations[code] = self._recommend(
                    therapy,
                    therapy.base_priority,
                    f"{therapy.category} therapy for {constitutional_type.value} constitution",
                )

        domains = self.problem_domains(scores)
        domains += [(domain, IRIS_DOMAIN_SCORE) for domain in iris_domains]

        for domain, score in domains:
            severe = score < self.severe_threshold
            for code in self.matching_codes(domain):
                if code in recommendations:
                    continue
                therapy = self.catalogue[code]
                priority = therapy.base_priority.escalated() if severe else therapy.base_priority
                recommendations[code] = self._recommend(
                    therapy,
                    priority,
                    f"{therapy.category} therapy for {domain} issues",
                    target_domain=domain,
                )

        if not recommendations:
            for code in DEFAULT_WELLNESS_CODES:
                therapy = self.catalogue.get(code) or THERAPY_CATALOGUE[code]
                recommendations[code] = self._recommend(
                    therapy,
                    therapy.base_priority,
                    f"{therapy.category} therapy for general wellness support",
                )

        # sorted() is stable, so equal priorities keep traversal order.
        ranked = sorted(recommendations.values(), key=lambda r: int(r.priority))
        return ranked[: self.max_results]

    @staticmethod
    def _recommend(
        therapy: TherapyProtocol,
        priority: TherapyPriority,
        description: str,
        target_domain: Optional[str] = None,
    ) -> TherapyRecommendation:
        return TherapyRecommendation(
            code=therapy.code,
            name=therapy.name,
            category=therapy.category,
            priority=priority,
            description=description,
            duration_minutes=therapy.duration_minutes,
            target_domain=target_domain,
            protocol=protocol_schedule(therapy),
        )
