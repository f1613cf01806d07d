"""
Question bank.

The clinic's questions live in the ``assessment_questions`` table; the
built-in bank below is used when that table is empty or unreachable.
"""

from api.models.assessment import AssessmentCategory, Question
from core import TransientStorageError, get_logger
from storage import RecordStore, Tables, parse_records

logger = get_logger(__name__)

FIVE_POINT = {
    "a": "Very poor / always",
    "b": "Poor / often",
    "c": "Fair / sometimes",
    "d": "Good / rarely",
    "e": "Excellent / never",
}

_BUILT_IN = [
    ("phy_01", AssessmentCategory.PHYSICAL, "How often do you experience pain in your joints or muscles?", 1.5),
    ("phy_02", AssessmentCategory.PHYSICAL, "How would you rate your energy levels during the day?", 1.0),
    ("phy_03", AssessmentCategory.PHYSICAL, "How is your circulation in hands and feet?", 1.0),
    ("men_01", AssessmentCategory.MENTAL, "How often do you feel stressed or anxious?", 1.5),
    ("men_02", AssessmentCategory.MENTAL, "How would you rate the quality of your sleep?", 1.0),
    ("men_03", AssessmentCategory.MENTAL, "How well can you concentrate on daily tasks?", 1.0),
    ("lif_01", AssessmentCategory.LIFESTYLE, "How balanced is your daily diet?", 1.0),
    ("lif_02", AssessmentCategory.LIFESTYLE, "How often do you exercise for 30 minutes or more?", 1.0),
    ("lif_03", AssessmentCategory.LIFESTYLE, "How much water do you drink each day?", 0.5),
    ("env_01", AssessmentCategory.ENVIRONMENT, "How would you rate the air quality where you live and work?", 1.0),
    ("env_02", AssessmentCategory.ENVIRONMENT, "How often are you exposed to chemicals or pollutants?", 1.0),
    ("env_03", AssessmentCategory.ENVIRONMENT, "How often do you catch colds or infections?", 1.0),
    ("his_01", AssessmentCategory.HISTORY, "How would you describe your current medical conditions?", 2.0),
    ("his_02", AssessmentCategory.HISTORY, "How often have you needed surgery or hospital care?", 1.0),
    ("his_03", AssessmentCategory.HISTORY, "How well controlled is any chronic pain you have had in the past year?", 1.0),
]


def built_in_questions() -> list[Question]:
    return [
        Question(
            question_id=question_id,
            text=text,
            category=category,
            weight=weight,
            order_position=position,
            options=FIVE_POINT,
        )
        for position, (question_id, category, text, weight) in enumerate(_BUILT_IN, start=1)
    ]


class QuestionBank:
    """Loads questions once and keeps them for the life of the engine."""

    def __init__(self, store: RecordStore):
        self.store = store
        self._questions: list[Question] | None = None

    def questions(self) -> list[Question]:
        if self._questions is not None:
            return self._questions
        try:
            rows = self.store.select(Tables.QUESTIONS, order_by="order_position")
        except TransientStorageError as e:
            logger.warning(f"Question table unavailable, using built-in bank: {e.message}")
            # Not cached, so the stored bank is picked up once reachable.
            return built_in_questions()

        questions = parse_records(Question, rows)
        if not questions:
            questions = built_in_questions()
        self._questions = sorted(questions, key=lambda q: q.order_position)
        return self._questions

    def get(self, question_id: str) -> Question | None:
        return next(
            (q for q in self.questions() if q.question_id == question_id), None
        )

