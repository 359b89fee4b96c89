"""
Dashboard Service

Builds the two landing dashboards:

- student: workflow stage, the next action, per-module progress and scores,
  Baseline versus Final comparison and the student's queue
- admin: KPIs for a timeframe, submission trend, upcoming deadlines, recent
  submissions, score distributions and Baseline/Final progress per college

Module scores come from the Score Engine over submitted attempts only.
"""

import datetime
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from sqlalchemy.ext.asyncio import AsyncSession

from assessflow.assessments.models import (
    AssessmentData,
    AssessmentSummary,
    ResponseData,
    StudentData,
    TrainingStatus,
    WorkflowAssessments,
)
from assessflow.assessments.repository import AssessmentRepository
from assessflow.assessments.scoring import module_score, round_half_up
from assessflow.assessments.workflow import derive_stage, resolve_workflow_assessments
from assessflow.common.auth.context import TenantContext
from assessflow.common.error_handling import StudentNotFoundError, TenantContextError
from assessflow.common.logger import get_logger, log_execution_time
from assessflow.config import settings
from assessflow.database.base import utcnow
from assessflow.reporting.aggregator import (
    average,
    build_score_distribution,
    build_submission_trend,
    count_at_risk,
    progress_status_label,
    resolve_timeframe,
)
from assessflow.reporting.repository import AttemptRecord, ReportingRepository

logger = get_logger(__name__)

CURRENT_ATTEMPT_HREF = "/assessment/attempt"
UPCOMING_WINDOW = datetime.timedelta(days=10)
UPCOMING_LIMIT = 10
RECENT_LIMIT = 20

NEXT_ACTIONS: Dict[TrainingStatus, Dict[str, Any]] = {
    TrainingStatus.READY_FOR_BASELINE: {"label": "Start Baseline Assessment", "enabled": True},
    TrainingStatus.BASELINE_IN_PROGRESS: {"label": "Continue Baseline Assessment", "enabled": True},
    TrainingStatus.IN_TRAINING: {
        "label": "Training in progress",
        "enabled": False,
        "helper": "The final assessment unlocks once your training is approved.",
    },
    TrainingStatus.READY_FOR_FINAL: {"label": "Start Final Assessment", "enabled": True},
    TrainingStatus.FINAL_IN_PROGRESS: {"label": "Continue Final Assessment", "enabled": True},
    TrainingStatus.COMPLETED: {"label": "Programme completed", "enabled": False},
}

_BASELINE_STAGES = (TrainingStatus.READY_FOR_BASELINE, TrainingStatus.BASELINE_IN_PROGRESS)
_FINAL_STAGES = (TrainingStatus.READY_FOR_FINAL, TrainingStatus.FINAL_IN_PROGRESS)


def _isoformat(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _workflow_of(assessments: Iterable[AssessmentData]) -> WorkflowAssessments:
    return resolve_workflow_assessments(
        AssessmentSummary(id=a.id, title=a.title, order=a.order) for a in assessments
    )


def attempt_module_scores(
    assessment: AssessmentData,
    attempt: AttemptRecord,
    responses: Mapping[int, ResponseData],
) -> Dict[int, Optional[int]]:
    """Module score per served module id of a submitted attempt."""
    served = assessment.restricted_to(attempt.module_filter)
    return {module.id: module_score(module, responses) for module in served.modules}


def next_action(stage: TrainingStatus) -> Dict[str, Any]:
    action = dict(NEXT_ACTIONS[stage])
    action["href"] = CURRENT_ATTEMPT_HREF if action["enabled"] else None
    return action


def resolve_stage(
    student: StudentData,
    workflow: WorkflowAssessments,
    attempts: Mapping[int, AttemptRecord],
) -> TrainingStatus:
    """Stored status when there is one, otherwise the stage implied by the attempts."""
    if student.stored_status:
        return student.training_status

    def submitted(summary: Optional[AssessmentSummary]) -> Optional[bool]:
        attempt = attempts.get(summary.id) if summary is not None else None
        return attempt.is_submitted if attempt is not None else None

    return derive_stage(submitted(workflow.baseline), submitted(workflow.final))


class DashboardService:
    """Read-only dashboard payloads for students and administrators."""

    def __init__(
        self,
        session: AsyncSession,
        reporting: Optional[ReportingRepository] = None,
        assessments: Optional[AssessmentRepository] = None,
        at_risk_threshold: Optional[float] = None,
    ):
        self.session = session
        self.reporting = reporting or ReportingRepository(session)
        self.assessments = assessments or AssessmentRepository(session)
        self.at_risk_threshold = (
            at_risk_threshold if at_risk_threshold is not None else settings.AT_RISK_THRESHOLD
        )

    async def student_dashboard(self, ctx: TenantContext) -> Dict[str, Any]:
        """
        Landing page of a student.

        Raises:
            TenantContextError: Caller has no tenant
            StudentNotFoundError: Caller has no student profile
        """
        if ctx.tenant_id is None:
            raise TenantContextError()
        student = await self.assessments.find_student(ctx)
        if student is None:
            raise StudentNotFoundError()

        assessments = await self.reporting.load_assessments(ctx.tenant_id)
        workflow = _workflow_of(assessments.values())
        attempts = {
            attempt.assessment_id: attempt
            for attempt in await self.reporting.list_student_attempts(ctx.tenant_id, student.id)
        }
        responses = await self.reporting.responses_by_attempt(
            attempt.id for attempt in attempts.values() if attempt.is_submitted
        )

        blocks = []
        for assessment in assessments.values():
            attempt = attempts.get(assessment.id)
            served = assessment.restricted_to(attempt.module_filter) if attempt else assessment
            scores: Dict[int, Optional[int]] = {}
            if attempt is not None and attempt.is_submitted:
                scores = attempt_module_scores(assessment, attempt, responses[attempt.id])

            blocks.append({
                "id": assessment.id,
                "title": assessment.title,
                "order": assessment.order,
                "stage": workflow.stage_of(assessment.id),
                "attempt_id": attempt.id if attempt else None,
                "submitted_at": _isoformat(attempt.submitted_at) if attempt else None,
                "score": attempt.rounded_percentage if attempt and attempt.is_submitted else None,
                "modules": [
                    {
                        "id": module.id,
                        "number": module.order,
                        "title": module.title,
                        "code": module.code,
                        "status": "Complete" if scores.get(module.id) is not None else "Incomplete",
                        "score": scores.get(module.id),
                        "due_at": _isoformat(module.end_at),
                    }
                    for module in served.modules
                ],
            })

        stage = resolve_stage(student, workflow, attempts)
        by_id = {block["id"]: block for block in blocks}

        current = None
        if stage in _BASELINE_STAGES and workflow.baseline is not None:
            current = by_id.get(workflow.baseline.id)
        elif stage in _FINAL_STAGES and workflow.final is not None:
            current = by_id.get(workflow.final.id)

        active_module = None
        upcoming = []
        if current is not None:
            pending = [module for module in current["modules"] if module["status"] == "Incomplete"]
            if pending:
                active_module = dict(pending[0], assessment_id=current["id"], assessment=current["title"])
            upcoming = [
                {"title": module["title"], "assessment": current["title"], "due_at": module["due_at"]}
                for module in pending
            ]

        submitted = [
            {
                "title": module["title"],
                "assessment": block["title"],
                "score": module["score"],
                "when": block["submitted_at"],
            }
            for block in blocks
            for module in block["modules"]
            if module["score"] is not None
        ]

        all_scores = [module["score"] for block in blocks for module in block["modules"]]
        aggregate = average(all_scores)

        return {
            "student": student.to_dict(),
            "stage": stage.value,
            "nextAction": next_action(stage),
            "activeModule": active_module,
            "assessments": blocks,
            "comparisons": self._comparisons(workflow, by_id),
            "aggregateScore": round_half_up(aggregate) if aggregate is not None else None,
            "myQueue": {"submitted": submitted, "upcoming": upcoming},
        }

    @staticmethod
    def _comparisons(workflow: WorkflowAssessments, blocks: Mapping[int, Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Baseline (a1) versus Final (a2) score per module number."""
        baseline = blocks.get(workflow.baseline.id) if workflow.baseline else None
        final = blocks.get(workflow.final.id) if workflow.final else None

        rows: Dict[int, Dict[str, Any]] = {}
        for key, block in (("a1", baseline), ("a2", final)):
            if block is None:
                continue
            for module in block["modules"]:
                row = rows.setdefault(
                    module["number"], {"number": module["number"], "title": module["title"], "a1": None, "a2": None}
                )
                row[key] = module["score"]
        return [rows[number] for number in sorted(rows)]

    @log_execution_time(logger)
    async def admin_dashboard(self, ctx: TenantContext, timeframe: Optional[str] = None) -> Dict[str, Any]:
        """
        Tenant dashboard for administrators.

        Args:
            ctx: Administrator context
            timeframe: ``today`` | ``7d`` | ``30d``; anything else means today
        """
        tenant_id = ctx.tenant_id
        now = utcnow()
        start, end = resolve_timeframe(timeframe, now)

        colleges = await self.reporting.list_colleges(tenant_id)
        college_names = {college.id: college.name for college in colleges}
        students = {student.id: student for student in await self.reporting.list_students(tenant_id)}
        assessments = await self.reporting.load_assessments(tenant_id)

        window = await self.reporting.list_submitted_attempts(tenant_id, since=start, until=end)
        previous = await self.reporting.list_submitted_attempts(tenant_id, since=start - (end - start), until=start)
        module_scores = await self._scored_modules(assessments, window + previous)

        window_scores = [score for attempt in window for score in module_scores[attempt.id]]
        average_score = average(window_scores)
        previous_average = average(score for attempt in previous for score in module_scores[attempt.id])

        per_student: Dict[int, List[int]] = defaultdict(list)
        by_college: Dict[int, List[int]] = defaultdict(list)
        for attempt in window:
            per_student[attempt.student_id].extend(module_scores[attempt.id])
            if attempt.college_id is not None:
                by_college[attempt.college_id].extend(module_scores[attempt.id])
        at_risk = count_at_risk((average(scores) for scores in per_student.values()), self.at_risk_threshold)

        kpis = [
            {
                "label": "Active Assessments",
                "value": await self.reporting.count_active_assessments(tenant_id),
                "delta": None,
            },
            {"label": "Submissions", "value": len(window), "delta": len(window) - len(previous)},
            {
                "label": "Average Score",
                "value": round_half_up(average_score) if average_score is not None else None,
                "delta": (
                    round_half_up(average_score - previous_average)
                    if average_score is not None and previous_average is not None
                    else None
                ),
            },
            {"label": "At-Risk Students", "value": at_risk, "delta": None},
        ]

        upcoming = [
            {
                "id": item.module.id,
                "title": item.assessment_title,
                "course": item.module.title,
                "due": _isoformat(item.module.end_at),
                "count": len(students),
                "status": "Scheduled" if item.module.start_at and item.module.start_at > now else "Open",
            }
            for item in await self.reporting.upcoming_modules(tenant_id, now, now + UPCOMING_WINDOW, UPCOMING_LIMIT)
        ]

        recent = []
        for attempt in window:
            scores = module_scores[attempt.id]
            if not scores:
                continue
            student = students.get(attempt.student_id)
            assessment = assessments.get(attempt.assessment_id)
            recent.append({
                "id": attempt.id,
                "studentId": attempt.student_id,
                "student": student.name if student else None,
                "regNo": student.reg_no if student else None,
                "assessment": assessment.title if assessment else None,
                "score": round_half_up(average(scores)),
                "when": _isoformat(attempt.submitted_at),
                "tenantId": str(attempt.college_id) if attempt.college_id is not None else None,
                "tenantName": college_names.get(attempt.college_id),
            })
        recent = recent[:RECENT_LIMIT]

        return {
            "tenants": [{"id": str(college.id), "name": college.name} for college in colleges],
            "kpis": kpis,
            "trend": build_submission_trend(
                (attempt.submitted_at for attempt in window), start, end, settings.TREND_MAX_POINTS
            ),
            "upcoming": upcoming,
            "recent": recent,
            "distribution": build_score_distribution(window_scores),
            "distributionByTenant": {
                str(college.id): build_score_distribution(by_college.get(college.id, []))
                for college in colleges
            },
            "progressByCollege": await self._progress_by_college(tenant_id, colleges, assessments),
        }

    async def _scored_modules(
        self,
        assessments: Mapping[int, AssessmentData],
        attempts: List[AttemptRecord],
    ) -> Dict[int, List[int]]:
        """Non-null module scores per attempt id, in module order."""
        responses = await self.reporting.responses_by_attempt(attempt.id for attempt in attempts)
        scored: Dict[int, List[int]] = {}
        for attempt in attempts:
            assessment = assessments.get(attempt.assessment_id)
            if assessment is None:
                scored[attempt.id] = []
                continue
            scores = attempt_module_scores(assessment, attempt, responses[attempt.id])
            scored[attempt.id] = [score for score in scores.values() if score is not None]
        return scored

    async def _progress_by_college(
        self,
        tenant_id: int,
        colleges,
        assessments: Mapping[int, AssessmentData],
    ) -> List[Dict[str, Any]]:
        """Students per college who submitted the Baseline and the Final."""
        workflow = _workflow_of(assessments.values())
        student_counts = await self.reporting.student_counts_by_college(tenant_id)

        completed: Dict[str, Dict[int, Set[int]]] = {"baseline": defaultdict(set), "final": defaultdict(set)}
        for attempt in await self.reporting.list_submitted_attempts(tenant_id):
            stage = workflow.stage_of(attempt.assessment_id)
            if stage is not None and attempt.college_id is not None:
                completed[stage][attempt.college_id].add(attempt.student_id)

        rows = []
        for college in colleges:
            total = student_counts.get(college.id, 0)
            row: Dict[str, Any] = {"collegeId": str(college.id), "college": college.name, "students": total}
            for stage in ("baseline", "final"):
                done = len(completed[stage][college.id])
                row[stage] = {"completed": done, "status": progress_status_label(done, total)}
            rows.append(row)
        return rows
