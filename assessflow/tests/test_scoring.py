"""
Tests for the Score Engine.
"""

import pytest

from assessflow.assessments.models import (
    AssessmentData,
    ModuleData,
    OptionData,
    QuestionData,
    QuestionType,
    ResponseData,
)
from assessflow.assessments.scoring import (
    assessment_total_marks,
    is_response_correct,
    module_performance,
    module_score,
    percentage,
    round_half_up,
    score_responses,
)


def mcq(question_id, points=5, correct_option=1, module_id=1, question_type=QuestionType.MCQ):
    return QuestionData(
        id=question_id,
        module_id=module_id,
        stem=f"Question {question_id}",
        type=question_type,
        points=points,
        options=(
            OptionData(id=question_id * 10 + 1, label="A", text="first", is_correct=correct_option == 1),
            OptionData(id=question_id * 10 + 2, label="B", text="second", is_correct=correct_option == 2),
        ),
    )


def text_question(question_id, canonical_text, canonical_label="A", points=5):
    options = ()
    if canonical_text is not None or canonical_label is not None:
        options = (OptionData(id=question_id * 10 + 1, label=canonical_label, text=canonical_text, is_correct=True),)
    return QuestionData(
        id=question_id, module_id=1, stem="Free text", type=QuestionType.TEXT, points=points, options=options
    )


def answer(question_id, option_id=None, text=None):
    return ResponseData(id=None, question_id=question_id, option_id=option_id, text_answer=text)


class TestQuestionType:
    def test_parse_is_case_insensitive(self):
        assert QuestionType.parse("mcq") is QuestionType.MCQ
        assert QuestionType.parse(" Boolean ") is QuestionType.BOOLEAN

    def test_unknown_strings_do_not_raise(self):
        assert QuestionType.parse("essay") is QuestionType.UNKNOWN
        assert QuestionType.parse(None) is QuestionType.UNKNOWN


class TestIsResponseCorrect:
    def test_mcq_with_correct_option(self):
        question = mcq(1, correct_option=2)
        assert is_response_correct(question, option_id=12)
        assert not is_response_correct(question, option_id=11)

    def test_mcq_without_selection_is_incorrect(self):
        assert not is_response_correct(mcq(1), option_id=None)

    def test_option_of_another_question_is_incorrect(self):
        assert not is_response_correct(mcq(1), option_id=21)

    def test_boolean_behaves_like_mcq(self):
        question = mcq(3, correct_option=1, question_type=QuestionType.BOOLEAN)
        assert is_response_correct(question, option_id=31)

    def test_text_is_trimmed_and_case_insensitive(self):
        question = text_question(4, "  Paris  ")
        assert is_response_correct(question, text_answer="paris")
        assert is_response_correct(question, text_answer=" PARIS ")
        assert not is_response_correct(question, text_answer="Lyon")

    def test_empty_text_answer_is_incorrect(self):
        question = text_question(4, "Paris")
        assert not is_response_correct(question, text_answer="   ")
        assert not is_response_correct(question, text_answer=None)

    def test_text_falls_back_to_label(self):
        question = text_question(5, None, canonical_label="Yes")
        assert is_response_correct(question, text_answer="yes")

    def test_text_without_canonical_option_is_incorrect(self):
        question = QuestionData(id=6, module_id=1, stem="?", type=QuestionType.TEXT, points=5)
        assert not is_response_correct(question, text_answer="anything")

    def test_unknown_type_is_incorrect(self):
        question = mcq(7, question_type=QuestionType.UNKNOWN)
        assert not is_response_correct(question, option_id=71)


class TestAssessmentScoring:
    def setup_method(self):
        self.module = ModuleData(id=1, assessment_id=1, title="Quantitative Aptitude", questions=(mcq(1), mcq(2)))
        self.assessment = AssessmentData(id=1, title="Baseline", modules=(self.module,))

    def test_one_of_two_correct(self):
        responses = [answer(1, option_id=11), answer(2, option_id=22)]
        score = score_responses(self.assessment, responses)
        total = assessment_total_marks(self.assessment)

        assert score == 5
        assert total == 10
        assert percentage(score, total) == 50

    def test_responses_to_unknown_questions_are_ignored(self):
        assert score_responses(self.assessment, [answer(99, option_id=991)]) == 0

    def test_missing_points_count_as_zero(self):
        module = ModuleData(id=1, assessment_id=1, title="M", questions=(mcq(1, points=None),))
        assessment = AssessmentData(id=1, title="A", modules=(module,))

        assert score_responses(assessment, [answer(1, option_id=11)]) == 0
        assert assessment_total_marks(assessment) == 1

    def test_total_marks_covers_every_module(self):
        other = ModuleData(id=2, assessment_id=1, title="Verbal Ability", questions=(mcq(3, points=10, module_id=2),))
        assessment = AssessmentData(id=1, title="A", modules=(self.module, other))
        assert assessment_total_marks(assessment) == 20


class TestPercentage:
    def test_zero_total_uses_one(self):
        assert percentage(0, 0) == 0
        assert percentage(1, None) == 100

    def test_rounds_half_up(self):
        assert percentage(1, 8) == 13
        assert round_half_up(2.5) == 3
        assert round_half_up(0.125, 2) == pytest.approx(0.13)

    def test_one_decimal(self):
        assert percentage(1, 3, ndigits=1) == pytest.approx(33.3)


class TestModuleScore:
    def test_none_without_questions(self):
        module = ModuleData(id=1, assessment_id=1, title="Empty")
        assert module_score(module, {}) is None

    def test_none_without_answers(self):
        module = ModuleData(id=1, assessment_id=1, title="M", questions=(mcq(1),))
        assert module_score(module, {}) is None

    def test_counts_correct_mcq_over_all_questions(self):
        module = ModuleData(id=1, assessment_id=1, title="M", questions=(mcq(1), mcq(2), mcq(3), mcq(4)))
        responses = {1: answer(1, option_id=11), 2: answer(2, option_id=22)}
        assert module_score(module, responses) == 25

    def test_text_answers_do_not_count(self):
        module = ModuleData(id=1, assessment_id=1, title="M", questions=(text_question(1, "Paris"),))
        assert module_score(module, {1: answer(1, text="Paris")}) == 0


class TestModulePerformance:
    def test_groups_by_title_over_selected_options(self):
        qa = ModuleData(id=1, assessment_id=1, title="Quantitative Aptitude", questions=(mcq(1), mcq(2)))
        va = ModuleData(
            id=2, assessment_id=1, title="Verbal Ability",
            questions=(mcq(3, module_id=2), text_question(4, "Paris")),
        )
        assessment = AssessmentData(id=1, title="Baseline", modules=(qa, va))
        responses = [
            answer(1, option_id=11),
            answer(2, option_id=22),
            answer(3, option_id=31),
            answer(4, text="Paris"),
        ]

        performance = module_performance(assessment, responses)

        assert performance["Quantitative Aptitude"].obtained == 5
        assert performance["Quantitative Aptitude"].possible == 10
        assert performance["Quantitative Aptitude"].percentage == pytest.approx(50.0)
        assert performance["Verbal Ability"].possible == 5
        assert performance["Verbal Ability"].percentage == pytest.approx(100.0)

    def test_unanswered_modules_are_absent(self):
        qa = ModuleData(id=1, assessment_id=1, title="Quantitative Aptitude", questions=(mcq(1),))
        assessment = AssessmentData(id=1, title="Baseline", modules=(qa,))
        assert module_performance(assessment, []) == {}
