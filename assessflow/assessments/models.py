"""
Domain models for the assessment workflow.

Immutable value objects handed between the workflow, scoring, attempt and
reporting code. They are built from ORM rows by the repository and never
written back; every state change goes through ``AttemptLifecycleManager``.
"""

import datetime
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple


class QuestionType(Enum):
    """Closed set of gradable question types."""
    MCQ = "MCQ"
    BOOLEAN = "BOOLEAN"
    TEXT = "TEXT"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value: Optional[str]) -> "QuestionType":
        """Map a stored type string, tolerating case and unknown values."""
        if not value:
            return cls.UNKNOWN
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            return cls.UNKNOWN


class TrainingStatus(Enum):
    """Workflow stage of a student."""
    READY_FOR_BASELINE = "ready_for_baseline"
    BASELINE_IN_PROGRESS = "baseline_in_progress"
    IN_TRAINING = "in_training"
    READY_FOR_FINAL = "ready_for_final"
    FINAL_IN_PROGRESS = "final_in_progress"
    COMPLETED = "completed"

    @classmethod
    def parse(cls, value: Optional[str]) -> "TrainingStatus":
        """
        Read a stored or live-computed stage name.

        Accepts the attempt-derived names (``baseline_not_started``,
        ``final_not_started``) as aliases. Empty and unrecognised values fall
        back to ``READY_FOR_BASELINE``.
        """
        if not value:
            return cls.READY_FOR_BASELINE
        normalized = str(value).strip().lower()
        normalized = _STAGE_ALIASES.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.READY_FOR_BASELINE


_STAGE_ALIASES = {
    "baseline_not_started": TrainingStatus.READY_FOR_BASELINE.value,
    "final_not_started": TrainingStatus.READY_FOR_FINAL.value,
}


def _isoformat(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class OptionData:
    id: int
    label: Optional[str]
    text: Optional[str]
    is_correct: bool = False

    def to_dict(self, include_answer: bool = False) -> Dict[str, Any]:
        data: Dict[str, Any] = {"id": self.id, "label": self.label, "text": self.text}
        if include_answer:
            data["is_correct"] = self.is_correct
        return data


@dataclass(frozen=True)
class QuestionData:
    id: int
    module_id: int
    stem: str
    type: QuestionType
    points: Optional[int] = None
    topic: Optional[str] = None
    difficulty: Optional[str] = None
    options: Tuple[OptionData, ...] = ()

    @property
    def weight(self) -> int:
        """Points with unset treated as zero."""
        return self.points or 0

    @property
    def canonical_option(self) -> Optional[OptionData]:
        """First option flagged correct, or ``None``."""
        return next((option for option in self.options if option.is_correct), None)

    def find_option(self, option_id: Optional[int]) -> Optional[OptionData]:
        if option_id is None:
            return None
        return next((option for option in self.options if option.id == option_id), None)

    def to_dict(self, include_answer: bool = False) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "prompt": self.stem,
            "points": self.points,
            "topic": self.topic,
            "options": [option.to_dict(include_answer) for option in self.options],
        }


@dataclass(frozen=True)
class ModuleData:
    id: int
    assessment_id: int
    title: str
    order: int = 0
    code: Optional[str] = None
    start_at: Optional[datetime.datetime] = None
    end_at: Optional[datetime.datetime] = None
    time_limit_min: Optional[int] = None
    questions: Tuple[QuestionData, ...] = ()

    def to_dict(self, include_answer: bool = False) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "code": self.code,
            "order": self.order,
            "start_at": _isoformat(self.start_at),
            "end_at": _isoformat(self.end_at),
            "time_limit_min": self.time_limit_min,
            "questions": [question.to_dict(include_answer) for question in self.questions],
        }


@dataclass(frozen=True)
class AdaptiveModuleFilter:
    """Module ids a Final attempt is restricted to."""
    module_ids: FrozenSet[int]

    META_KEY = "focused_modules"

    @classmethod
    def of(cls, module_ids: Iterable[int]) -> Optional["AdaptiveModuleFilter"]:
        """Build a filter, or ``None`` when no ids are given."""
        ids = frozenset(int(module_id) for module_id in module_ids)
        return cls(ids) if ids else None

    @classmethod
    def from_meta(cls, meta: Optional[Dict[str, Any]]) -> Optional["AdaptiveModuleFilter"]:
        """Read the filter stored in ``Attempt.meta``; malformed entries are ignored."""
        if not isinstance(meta, dict):
            return None
        raw = meta.get(cls.META_KEY)
        if not isinstance(raw, (list, tuple)):
            return None
        ids = []
        for value in raw:
            try:
                ids.append(int(value))
            except (TypeError, ValueError):
                continue
        return cls.of(ids)

    def to_meta(self) -> Dict[str, Any]:
        return {self.META_KEY: sorted(self.module_ids)}

    def apply(self, modules: Iterable[ModuleData]) -> Tuple[ModuleData, ...]:
        return tuple(module for module in modules if module.id in self.module_ids)


@dataclass(frozen=True)
class AssessmentData:
    id: int
    title: str
    order: int = 0
    type: Optional[str] = None
    instructions: Optional[str] = None
    is_active: bool = True
    modules: Tuple[ModuleData, ...] = ()

    @property
    def questions(self) -> List[QuestionData]:
        return [question for module in self.modules for question in module.questions]

    def find_question(self, question_id: int) -> Optional[QuestionData]:
        return next((q for q in self.questions if q.id == question_id), None)

    def restricted_to(self, module_filter: Optional[AdaptiveModuleFilter]) -> "AssessmentData":
        """
        Copy holding only the filtered modules.

        ``None``, or a filter naming none of this assessment's modules, keeps
        every module.
        """
        if module_filter is None:
            return self
        modules = module_filter.apply(self.modules)
        if not modules:
            return self
        return AssessmentData(
            id=self.id,
            title=self.title,
            order=self.order,
            type=self.type,
            instructions=self.instructions,
            is_active=self.is_active,
            modules=modules,
        )

    def to_dict(self, include_answer: bool = False) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "type": self.type,
            "instructions": self.instructions,
            "order": self.order,
            "modules": [module.to_dict(include_answer) for module in self.modules],
        }


@dataclass(frozen=True)
class AssessmentSummary:
    """Identity of an assessment as seen by the workflow."""
    id: int
    title: str
    order: int = 0


@dataclass(frozen=True)
class WorkflowAssessments:
    """The tenant's Baseline and Final assessments, either may be missing."""
    baseline: Optional[AssessmentSummary] = None
    final: Optional[AssessmentSummary] = None

    def stage_of(self, assessment_id: int) -> Optional[str]:
        if self.baseline is not None and assessment_id == self.baseline.id:
            return "baseline"
        if self.final is not None and assessment_id == self.final.id:
            return "final"
        return None


@dataclass(frozen=True)
class ResponseData:
    id: Optional[int]
    question_id: int
    option_id: Optional[int] = None
    text_answer: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "question_id": self.question_id,
            "option_id": self.option_id,
            "text_answer": self.text_answer,
        }


@dataclass(frozen=True)
class AttemptData:
    """
    An attempt together with the content served to the student.

    ``assessment`` already has the adaptive filter applied; ``full_assessment``
    keeps every module and is what ``total_marks`` is computed from.
    """
    id: int
    tenant_id: int
    assessment_id: int
    student_id: int
    started_at: datetime.datetime
    assessment: AssessmentData
    full_assessment: AssessmentData
    submitted_at: Optional[datetime.datetime] = None
    duration_sec: int = 0
    score: Optional[float] = None
    total_marks: Optional[float] = None
    module_filter: Optional[AdaptiveModuleFilter] = None
    responses: Tuple[ResponseData, ...] = field(default_factory=tuple)

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "assessment_id": self.assessment_id,
            "student_id": self.student_id,
            "started_at": _isoformat(self.started_at),
            "submitted_at": _isoformat(self.submitted_at),
            "duration_sec": self.duration_sec,
            "score": self.score,
            "total_marks": self.total_marks,
            "focused_modules": sorted(self.module_filter.module_ids) if self.module_filter else None,
            "assessment": self.assessment.to_dict(),
            "responses": [response.to_dict() for response in self.responses],
        }


@dataclass(frozen=True)
class StudentData:
    id: int
    tenant_id: int
    reg_no: str
    name: str
    training_status: TrainingStatus = TrainingStatus.READY_FOR_BASELINE
    stored_status: Optional[str] = None
    college_id: Optional[int] = None
    email: Optional[str] = None
    user_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "reg_no": self.reg_no,
            "name": self.name,
            "email": self.email,
            "college_id": self.college_id,
            "training_status": self.training_status.value,
        }
