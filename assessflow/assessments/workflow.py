"""
Workflow State Machine.

Decides which assessment a student is served next, how the stored
``training_status`` moves, and which Final modules an adaptive attempt is
restricted to. All functions are pure; the lifecycle manager applies the
results inside its transaction.

    ready_for_baseline -> baseline_in_progress -> in_training
        -> ready_for_final -> final_in_progress -> completed
"""

from dataclasses import dataclass
from typing import Iterable, Mapping, Optional, Sequence

from assessflow.assessments.models import (
    AdaptiveModuleFilter,
    AssessmentSummary,
    ModuleData,
    TrainingStatus,
    WorkflowAssessments,
)
from assessflow.assessments.scoring import ModulePerformance
from assessflow.common.error_handling import (
    FinalAssessmentNotConfiguredError,
    InvalidTransitionError,
    NoAssessmentsConfiguredError,
    ProgrammeCompletedError,
    TrainingInProgressError,
)
from assessflow.common.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class WorkflowPlan:
    """
    Outcome of a "current assessment" request.

    Attributes:
        assessment: Assessment to create or resume an attempt for
        new_status: Status to store, or ``None`` to leave it unchanged
        compute_weak_modules: Whether the adaptive filter must be computed
    """
    assessment: AssessmentSummary
    new_status: Optional[TrainingStatus]
    compute_weak_modules: bool = False


def resolve_workflow_assessments(assessments: Iterable[AssessmentSummary]) -> WorkflowAssessments:
    """First two assessments by (order, id) are Baseline and Final."""
    ordered = sorted(assessments, key=lambda a: (a.order, a.id))
    baseline = ordered[0] if ordered else None
    final = ordered[1] if len(ordered) > 1 else None
    return WorkflowAssessments(baseline=baseline, final=final)


def plan_current_attempt(status: TrainingStatus, workflow: WorkflowAssessments) -> WorkflowPlan:
    """
    Apply the transition table for a "current assessment" request.

    Raises:
        NoAssessmentsConfiguredError: The tenant has no assessment at all
        TrainingInProgressError: Student is waiting for promotion
        ProgrammeCompletedError: Student already finished
        FinalAssessmentNotConfiguredError: Final stage reached without a Final assessment
    """
    if workflow.baseline is None:
        raise NoAssessmentsConfiguredError()

    if status is TrainingStatus.READY_FOR_BASELINE:
        return WorkflowPlan(workflow.baseline, TrainingStatus.BASELINE_IN_PROGRESS)

    if status is TrainingStatus.BASELINE_IN_PROGRESS:
        return WorkflowPlan(workflow.baseline, None)

    if status is TrainingStatus.IN_TRAINING:
        raise TrainingInProgressError()

    if status is TrainingStatus.COMPLETED:
        raise ProgrammeCompletedError()

    if workflow.final is None:
        raise FinalAssessmentNotConfiguredError()

    if status is TrainingStatus.READY_FOR_FINAL:
        return WorkflowPlan(workflow.final, TrainingStatus.FINAL_IN_PROGRESS, compute_weak_modules=True)

    # FINAL_IN_PROGRESS: resume, the stored filter is reused
    return WorkflowPlan(workflow.final, None)


def status_after_submission(assessment_id: int, workflow: WorkflowAssessments) -> Optional[TrainingStatus]:
    """Status a submission moves the student to; ``None`` for assessments outside the workflow."""
    stage = workflow.stage_of(assessment_id)
    if stage == "baseline":
        return TrainingStatus.IN_TRAINING
    if stage == "final":
        return TrainingStatus.COMPLETED
    return None


def promote_to_final(status: TrainingStatus) -> TrainingStatus:
    """
    Administrative approval after training.

    Raises:
        InvalidTransitionError: Student is not in training
    """
    if status is not TrainingStatus.IN_TRAINING:
        raise InvalidTransitionError(
            f"Only students in training can be approved for the final assessment (current: {status.value}).",
            details={"training_status": status.value},
        )
    return TrainingStatus.READY_FOR_FINAL


def derive_stage(baseline_submitted: Optional[bool], final_submitted: Optional[bool]) -> TrainingStatus:
    """
    Stage computed from attempt presence.

    Each argument is ``None`` when no attempt exists, otherwise whether that
    attempt has been submitted.
    """
    if baseline_submitted is None:
        return TrainingStatus.READY_FOR_BASELINE
    if not baseline_submitted:
        return TrainingStatus.BASELINE_IN_PROGRESS
    if final_submitted is None:
        return TrainingStatus.READY_FOR_FINAL
    if not final_submitted:
        return TrainingStatus.FINAL_IN_PROGRESS
    return TrainingStatus.COMPLETED


def select_weak_modules(
    baseline_performance: Mapping[str, ModulePerformance],
    final_modules: Sequence[ModuleData],
    threshold: float = 70.0,
) -> Optional[AdaptiveModuleFilter]:
    """
    Restrict a Final attempt to the modules the student was weak at.

    Baseline modules scoring below ``threshold`` percent are matched to Final
    modules by exact title. Returns ``None`` (serve everything) when nothing is
    weak or no weak title exists in the Final assessment.
    """
    weak_titles = {
        title for title, performance in baseline_performance.items()
        if performance.percentage < threshold
    }
    if not weak_titles:
        return None

    matched = [module.id for module in final_modules if module.title in weak_titles]
    unmatched = weak_titles - {module.title for module in final_modules}
    if unmatched:
        logger.warning(f"Weak baseline modules without a final counterpart: {sorted(unmatched)}")

    return AdaptiveModuleFilter.of(matched)
