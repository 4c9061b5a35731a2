"""
Questionnaire Scorer

Accumulates the 20 answers into raw per-pattern point totals and maps them
onto the 0-100 scale used by fusion.

The normalization ((raw + 10) / 60 * 100, clamped) is a fixed calibration
that assumes raw totals fall roughly within [-10, 50]. It is not derived
from the table's actual minimum and maximum.
"""
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Sequence

from somatic_scan.core.errors import InvalidInputError
from somatic_scan.core.inference.patterns import PatternKey
from somatic_scan.core.inference.questionnaire_data import QUESTIONNAIRE, Question
from somatic_scan.utils import get_logger

logger = get_logger(__name__)

RAW_OFFSET = 10
RAW_SPAN = 60


def normalize_raw_score(raw: float) -> float:
    """Map a raw point total onto 0-100."""
    normalized = (raw + RAW_OFFSET) / RAW_SPAN * 100
    return max(0.0, min(100.0, normalized))


@dataclass(frozen=True)
class QuestionnaireResult:
    """Scored questionnaire."""
    raw_scores: Dict[PatternKey, int]
    normalized_scores: Dict[PatternKey, float]
    total_questions: int
    answered_count: int
    invalid_answers: Dict[int, str] = field(default_factory=dict)

    @property
    def total_raw_points(self) -> int:
        return sum(self.raw_scores.values())

    @property
    def completion_percentage(self) -> float:
        if self.total_questions == 0:
            return 0.0
        return self.answered_count / self.total_questions * 100

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw_scores": {k.value: v for k, v in self.raw_scores.items()},
            "normalized_scores": {k.value: round(v, 2) for k, v in self.normalized_scores.items()},
            "metadata": {
                "total_questions": self.total_questions,
                "answered_count": self.answered_count,
                "total_raw_points": self.total_raw_points,
                "completion_percentage": round(self.completion_percentage, 1),
            },
            "invalid_answers": {str(k): v for k, v in self.invalid_answers.items()},
        }


class QuestionnaireScorer:
    """
    Scores answer sequences against a questionnaire table.

    Unanswered entries (None or empty) contribute nothing. Labels that are
    not options for their question are logged and skipped.
    """

    def __init__(self, table: Sequence[Question] = QUESTIONNAIRE):
        self.table = tuple(table)
        self._scored_count = 0
        logger.info(f"QuestionnaireScorer initialized with {len(self.table)} questions")

    @property
    def question_count(self) -> int:
        return len(self.table)

    def score(self, answers: Optional[Sequence[Optional[str]]]) -> QuestionnaireResult:
        """
        Score one answer sequence.

        Args:
            answers: One label per question, in table order. None or "" marks
                an unanswered question.

        Returns:
            QuestionnaireResult with raw and normalized scores

        Raises:
            InvalidInputError: If the sequence length differs from the table
        """
        if answers is None or isinstance(answers, str) or len(answers) != len(self.table):
            got = "none" if answers is None else len(answers)
            raise InvalidInputError(
                f"Questionnaire requires exactly {len(self.table)} answers (got {got})"
            )

        raw: Dict[PatternKey, int] = {key: 0 for key in PatternKey}
        invalid: Dict[int, str] = {}
        answered = 0

        for question, answer in zip(self.table, answers):
            if answer is None or str(answer).strip() == "":
                continue
            answered += 1

            label = str(answer).strip().upper()
            option = question.option(label)
            if option is None:
                logger.warning(f"Invalid answer \"{answer}\" for question {question.id}")
                invalid[question.id] = str(answer)
                continue

            for key, points in option.scoring.items():
                raw[key] += points

        normalized = {key: normalize_raw_score(value) for key, value in raw.items()}
        self._scored_count += 1

        logger.info(
            f"Questionnaire scored: {answered}/{len(self.table)} answered, "
            + ", ".join(f"{k.value}={normalized[k]:.1f}" for k in PatternKey)
        )

        return QuestionnaireResult(
            raw_scores=raw,
            normalized_scores=normalized,
            total_questions=len(self.table),
            answered_count=answered,
            invalid_answers=invalid,
        )


def score_questionnaire(
    answers: Optional[Sequence[Optional[str]]],
    table: Sequence[Question] = QUESTIONNAIRE,
) -> QuestionnaireResult:
    """Score answers with a throwaway scorer."""
    return QuestionnaireScorer(table).score(answers)
