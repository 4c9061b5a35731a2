"""
Unit Tests for the Questionnaire Table and Scorer
"""
import pytest

from somatic_scan.core.errors import InvalidInputError
from somatic_scan.core.inference.patterns import PatternKey
from somatic_scan.core.inference.questionnaire import (
    QuestionnaireScorer,
    normalize_raw_score,
    score_questionnaire,
)
from somatic_scan.core.inference.questionnaire_data import (
    QUESTION_COUNT,
    QUESTIONNAIRE,
    Question,
    QuestionOption,
)


def _table(*scorings):
    return tuple(
        Question(id=i + 1, question=f"Q{i + 1}", options=(QuestionOption("A", "only", scoring),))
        for i, scoring in enumerate(scorings)
    )


@pytest.fixture
def scorer():
    return QuestionnaireScorer()


class TestQuestionnaireTable:
    """Shape of the built-in table."""

    def test_twenty_questions_in_order(self):
        assert QUESTION_COUNT == 20
        assert [q.id for q in QUESTIONNAIRE] == list(range(1, 21))

    def test_three_option_questions(self):
        three = [q.id for q in QUESTIONNAIRE if len(q.options) == 3]
        assert three == [16, 17, 19]
        assert all(len(q.options) == 4 for q in QUESTIONNAIRE if q.id not in three)

    def test_balanced_options_subtract_everywhere(self):
        option = QUESTIONNAIRE[4].option("A")
        assert option.scoring == {key: -1 for key in PatternKey}

    def test_to_dict(self):
        data = QUESTIONNAIRE[0].to_dict()
        assert data["id"] == 1
        assert data["options"][1]["scoring"] == {"lower_compression": 2, "upper_compression": 1}


class TestNormalization:
    def test_fixed_calibration(self):
        assert normalize_raw_score(-10) == 0.0
        assert normalize_raw_score(20) == pytest.approx(50.0)
        assert normalize_raw_score(50) == 100.0

    def test_clamped(self):
        assert normalize_raw_score(-30) == 0.0
        assert normalize_raw_score(120) == 100.0


class TestQuestionnaireScorer:
    """Scoring answer sequences."""

    def test_all_first_options(self, scorer):
        result = scorer.score(["A"] * 20)

        assert result.raw_scores == {
            PatternKey.UPPER_COMPRESSION: 29,
            PatternKey.LOWER_COMPRESSION: 3,
            PatternKey.THORACIC_COLLAPSE: 2,
            PatternKey.LATERAL_ASYMMETRY: 0,
        }
        assert result.normalized_scores[PatternKey.UPPER_COMPRESSION] == pytest.approx(65.0)
        assert result.normalized_scores[PatternKey.LATERAL_ASYMMETRY] == pytest.approx(50 / 3)
        assert result.answered_count == 20

    def test_labels_are_case_insensitive(self, scorer):
        upper = scorer.score(["A"] * 20)
        lower = scorer.score([" a "] * 20)
        assert lower.raw_scores == upper.raw_scores

    @pytest.mark.parametrize("count", [19, 21])
    def test_wrong_length_rejected(self, scorer, count):
        with pytest.raises(InvalidInputError) as exc:
            scorer.score(["A"] * count)
        assert "exactly 20 answers" in str(exc.value)

    def test_none_rejected(self, scorer):
        with pytest.raises(InvalidInputError):
            scorer.score(None)

    def test_string_is_not_an_answer_list(self, scorer):
        with pytest.raises(InvalidInputError):
            scorer.score("A" * 20)

    def test_unanswered_questions_contribute_nothing(self, scorer):
        answers = [None] * 20
        answers[9] = "D"
        result = scorer.score(answers)

        assert result.raw_scores[PatternKey.LATERAL_ASYMMETRY] == 3
        assert result.raw_scores[PatternKey.UPPER_COMPRESSION] == 0
        assert result.answered_count == 1
        assert result.completion_percentage == pytest.approx(5.0)

    def test_invalid_label_skipped(self, scorer):
        answers = ["A"] * 20
        answers[15] = "D"   # question 16 has no option D
        result = scorer.score(answers)

        assert result.invalid_answers == {16: "D"}
        assert result.raw_scores[PatternKey.LATERAL_ASYMMETRY] == -3

    def test_to_dict_metadata(self, scorer, balanced_answers):
        data = scorer.score(balanced_answers).to_dict()
        assert set(data["normalized_scores"]) == {key.value for key in PatternKey}
        assert data["metadata"]["total_questions"] == 20
        assert data["metadata"]["answered_count"] == 20
        assert data["invalid_answers"] == {}


class TestInjectedTables:
    """Scorer behavior independent of the built-in table."""

    def test_zero_table_scores_one_sixth(self):
        result = score_questionnaire(["A"] * 20, table=_table(*[{}] * 20))
        for value in result.normalized_scores.values():
            assert value == pytest.approx(100 / 6)

    def test_extreme_totals_are_clamped(self):
        table = _table(
            {PatternKey.UPPER_COMPRESSION: 80, PatternKey.LOWER_COMPRESSION: -25},
        )
        result = score_questionnaire(["A"], table=table)
        assert result.normalized_scores[PatternKey.UPPER_COMPRESSION] == 100.0
        assert result.normalized_scores[PatternKey.LOWER_COMPRESSION] == 0.0
        assert result.raw_scores[PatternKey.UPPER_COMPRESSION] == 80
