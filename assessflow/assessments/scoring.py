"""
Score Engine.

Pure functions turning stored responses into points and percentages at
question, module and assessment granularity. Nothing here touches the database.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Dict, Iterable, Mapping, Optional, Union

from assessflow.assessments.models import (
    AssessmentData,
    ModuleData,
    QuestionData,
    QuestionType,
    ResponseData,
)

Number = Union[int, float]


def round_half_up(value: Number, ndigits: int = 0) -> Number:
    """Round halves away from zero (``round()`` rounds them to even)."""
    quantum = Decimal(1).scaleb(-ndigits)
    rounded = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    return int(rounded) if ndigits == 0 else float(rounded)


def _normalize_text(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def is_response_correct(
    question: QuestionData,
    option_id: Optional[int] = None,
    text_answer: Optional[str] = None,
) -> bool:
    """
    Decide whether a single answer is correct.

    MCQ/BOOLEAN: the selected option is flagged correct.
    TEXT: the trimmed, case-folded answer equals the canonical option's text.
    Anything else is incorrect.
    """
    if question.type in (QuestionType.MCQ, QuestionType.BOOLEAN):
        selected = question.find_option(option_id)
        return selected is not None and selected.is_correct

    if question.type is QuestionType.TEXT:
        answer = _normalize_text(text_answer)
        if not answer:
            return False
        canonical = question.canonical_option
        if canonical is None:
            return False
        expected = canonical.text if canonical.text is not None else canonical.label
        return answer == _normalize_text(expected)

    return False


def _index_responses(responses: Iterable[ResponseData]) -> Dict[int, ResponseData]:
    return {response.question_id: response for response in responses}


def score_responses(assessment: AssessmentData, responses: Iterable[ResponseData]) -> int:
    """Raw point sum of correct responses; answers to unknown questions are ignored."""
    by_question = _index_responses(responses)
    score = 0
    for question in assessment.questions:
        response = by_question.get(question.id)
        if response is None:
            continue
        if is_response_correct(question, response.option_id, response.text_answer):
            score += question.weight
    return score


def assessment_total_marks(assessment: AssessmentData) -> int:
    """Points over every question of every module, at least 1."""
    total = sum(question.weight for question in assessment.questions)
    return total or 1


def percentage(score: Optional[Number], total_marks: Optional[Number], ndigits: int = 0) -> Number:
    """``score / total * 100`` with a zero or missing total treated as 1."""
    total = total_marks or 1
    return round_half_up((score or 0) / total * 100, ndigits)


def module_score(module: ModuleData, responses: Mapping[int, ResponseData]) -> Optional[int]:
    """
    Percentage of a module's questions answered correctly.

    Only MCQ questions are counted as correct at this granularity. Returns
    ``None`` when the module has no questions or none of them were answered.
    """
    if not module.questions:
        return None

    answered = [q for q in module.questions if q.id in responses]
    if not answered:
        return None

    correct = 0
    for question in answered:
        if question.type is not QuestionType.MCQ:
            continue
        response = responses[question.id]
        if is_response_correct(question, response.option_id):
            correct += 1

    return round_half_up(correct / len(module.questions) * 100)


@dataclass(frozen=True)
class ModulePerformance:
    """Points obtained versus possible over the answered questions of a module."""
    title: str
    obtained: int
    possible: int

    @property
    def percentage(self) -> float:
        if not self.possible:
            return 0.0
        return 100.0 * self.obtained / self.possible


def module_performance(
    assessment: AssessmentData,
    responses: Iterable[ResponseData],
) -> Dict[str, ModulePerformance]:
    """
    Per-module-title performance over responses that selected an option.

    Free-text answers carry no option and do not count here. Modules sharing
    a title are merged.
    """
    by_question = _index_responses(responses)
    totals: Dict[str, list] = {}

    for module in assessment.modules:
        for question in module.questions:
            response = by_question.get(question.id)
            if response is None or question.find_option(response.option_id) is None:
                continue
            bucket = totals.setdefault(module.title, [0, 0])
            bucket[1] += question.weight
            if question.find_option(response.option_id).is_correct:
                bucket[0] += question.weight

    return {
        title: ModulePerformance(title=title, obtained=obtained, possible=possible)
        for title, (obtained, possible) in totals.items()
    }
