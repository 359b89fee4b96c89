"""
Attempt Lifecycle Manager

Owns every write of the assessment workflow: creating or resuming attempts,
saving responses, submitting and approving students for the Final. Each
public operation is one unit of work, so a submission's score, timestamps and
the student's status transition are committed together or not at all.
"""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from assessflow.assessments.models import (
    AdaptiveModuleFilter,
    AttemptData,
    ResponseData,
    StudentData,
    WorkflowAssessments,
)
from assessflow.assessments.repository import AssessmentRepository
from assessflow.assessments.scoring import assessment_total_marks, module_performance, score_responses
from assessflow.assessments.workflow import (
    plan_current_attempt,
    promote_to_final,
    select_weak_modules,
    status_after_submission,
)
from assessflow.common.auth.context import TenantContext
from assessflow.common.error_handling import (
    AssessmentNotFoundError,
    AttemptAlreadySubmittedError,
    AttemptNotFoundError,
    AuthenticationError,
    AuthorizationError,
    QuestionNotFoundError,
    StudentNotFoundError,
    TenantContextError,
    ValidationError,
)
from assessflow.common.logger import get_logger, log_execution_time, with_context
from assessflow.config import settings
from assessflow.database.base import utcnow

logger = get_logger(__name__)


class AttemptLifecycleManager:
    """
    Create, resume, answer and submit attempts for the calling student.

    The manager works on a request-scoped session. When the session is not yet
    in a transaction each operation opens and commits its own; otherwise it runs
    in a SAVEPOINT and the caller commits.
    """

    def __init__(
        self,
        session: AsyncSession,
        repository: Optional[AssessmentRepository] = None,
        weak_module_threshold: Optional[float] = None,
    ):
        self.session = session
        self.repository = repository or AssessmentRepository(session)
        self.weak_module_threshold = (
            weak_module_threshold if weak_module_threshold is not None else settings.WEAK_MODULE_THRESHOLD
        )

    def _unit_of_work(self):
        if self.session.in_transaction():
            return self.session.begin_nested()
        return self.session.begin()

    async def _require_student(self, ctx: TenantContext, message: str = "Only students can take assessments.") -> StudentData:
        if ctx.tenant_id is None:
            raise TenantContextError()
        student = await self.repository.find_student(ctx) if ctx.is_student else None
        if student is None:
            raise AuthorizationError(message)
        return student

    @log_execution_time(logger)
    async def start_current(self, ctx: TenantContext) -> AttemptData:
        """
        Serve the attempt the workflow says the student is on.

        Moves ``ready_for_baseline`` and ``ready_for_final`` students into the
        matching in-progress status; in-progress students resume. Final attempts
        created here carry the adaptive module filter.
        """
        async with self._unit_of_work():
            student = await self._require_student(ctx)
            workflow = await self.repository.get_workflow(ctx.tenant_id)
            plan = plan_current_attempt(student.training_status, workflow)

            module_filter = None
            if plan.compute_weak_modules:
                module_filter = await self.compute_weak_module_filter(ctx.tenant_id, student.id, workflow)

            row, created = await self.repository.get_or_create_attempt(
                ctx.tenant_id, student.id, plan.assessment.id, module_filter
            )
            if plan.new_status is not None and plan.new_status is not student.training_status:
                await self.repository.set_training_status(ctx.tenant_id, student.id, plan.new_status)

            attempt = await self.repository.load_attempt(row)

        with_context(__name__, **ctx.log_context()).info(
            f"{'Started' if created else 'Resumed'} attempt {attempt.id} on assessment "
            f"'{plan.assessment.title}' (status {student.training_status.value} -> "
            f"{(plan.new_status or student.training_status).value})"
        )
        return attempt

    async def start_explicit(self, ctx: TenantContext, assessment_id: int) -> AttemptData:
        """Create or resume an attempt for a named assessment without touching the workflow."""
        async with self._unit_of_work():
            student = await self._require_student(ctx)
            assessment = await self.repository.get_assessment(ctx.tenant_id, assessment_id)
            if assessment is None:
                raise AssessmentNotFoundError(assessment_id)

            row, _ = await self.repository.get_or_create_attempt(ctx.tenant_id, student.id, assessment_id)
            return await self.repository.load_attempt(row)

    async def get_or_create_attempt(
        self,
        ctx: TenantContext,
        student_id: int,
        assessment_id: int,
        module_filter: Optional[AdaptiveModuleFilter] = None,
    ) -> AttemptData:
        """
        Find the student's attempt on an assessment or create it.

        A filter already stored on an existing attempt wins over ``module_filter``.
        """
        if ctx.tenant_id is None:
            raise TenantContextError()
        async with self._unit_of_work():
            row, _ = await self.repository.get_or_create_attempt(
                ctx.tenant_id, student_id, assessment_id, module_filter
            )
            return await self.repository.load_attempt(row)

    async def compute_weak_module_filter(
        self,
        tenant_id: int,
        student_id: int,
        workflow: WorkflowAssessments,
    ) -> Optional[AdaptiveModuleFilter]:
        """Final modules matching the Baseline modules the student scored below threshold on."""
        if workflow.baseline is None or workflow.final is None:
            return None

        baseline_attempt = await self.repository.latest_submitted_attempt(
            tenant_id, student_id, workflow.baseline.id
        )
        if baseline_attempt is None:
            return None

        final_assessment = await self.repository.get_assessment(tenant_id, workflow.final.id)
        if final_assessment is None:
            return None

        performance = module_performance(baseline_attempt.full_assessment, baseline_attempt.responses)
        module_filter = select_weak_modules(performance, final_assessment.modules, self.weak_module_threshold)
        logger.debug(
            f"Weak module filter for student {student_id}: "
            f"{sorted(module_filter.module_ids) if module_filter else 'all modules'}"
        )
        return module_filter

    async def save_progress(
        self,
        ctx: TenantContext,
        attempt_id: int,
        question_id: int,
        option_id: Optional[int] = None,
        text_answer: Optional[str] = None,
    ) -> ResponseData:
        """
        Upsert the caller's answer to one question of an open attempt.

        Raises:
            AttemptNotFoundError / QuestionNotFoundError: Unknown in this tenant
            AuthorizationError: Not the owner, or question outside the attempt's assessment
            AttemptAlreadySubmittedError: Attempt is closed
            ValidationError: Option does not belong to the question
        """
        async with self._unit_of_work():
            student = await self._require_student(ctx, "You cannot modify this attempt")

            row = await self.repository.get_attempt_row(ctx.tenant_id, attempt_id)
            if row is None:
                raise AttemptNotFoundError(attempt_id)
            if row.student_id != student.id:
                raise AuthorizationError("You cannot modify this attempt")
            if row.submitted_at is not None:
                raise AttemptAlreadySubmittedError(attempt_id)

            found = await self.repository.find_question(ctx.tenant_id, question_id)
            if found is None:
                raise QuestionNotFoundError(question_id)
            question, question_assessment_id = found
            if question_assessment_id != row.assessment_id:
                raise AuthorizationError(
                    "Question does not belong to this attempt's assessment",
                    details={"question_id": question_id, "attempt_id": attempt_id},
                )
            if option_id is not None and question.find_option(option_id) is None:
                raise ValidationError(
                    "Option does not belong to the question",
                    details={"question_id": question_id, "option_id": option_id},
                )

            return await self.repository.upsert_response(attempt_id, question_id, option_id, text_answer)

    @log_execution_time(logger)
    async def submit(self, ctx: TenantContext, attempt_id: int) -> AttemptData:
        """
        Score and close an attempt, then advance the workflow.

        Raises:
            AuthenticationError: Caller has no student profile
            AttemptNotFoundError: Unknown attempt
            AuthorizationError: Not the owner
            AttemptAlreadySubmittedError: Submitted before
        """
        if ctx.tenant_id is None:
            raise TenantContextError()

        async with self._unit_of_work():
            student = await self.repository.find_student(ctx) if ctx.is_student else None
            if student is None:
                raise AuthenticationError()

            row = await self.repository.get_attempt_row(ctx.tenant_id, attempt_id)
            if row is None:
                raise AttemptNotFoundError(attempt_id)
            if row.student_id != student.id:
                raise AuthorizationError("You cannot submit this attempt")
            if row.submitted_at is not None:
                raise AttemptAlreadySubmittedError(attempt_id)

            attempt = await self.repository.load_attempt(row)
            score = score_responses(attempt.full_assessment, attempt.responses)
            total_marks = assessment_total_marks(attempt.full_assessment)

            if not await self.repository.mark_submitted(row, score, total_marks, utcnow()):
                raise AttemptAlreadySubmittedError(attempt_id)

            workflow = await self.repository.get_workflow(ctx.tenant_id)
            new_status = status_after_submission(row.assessment_id, workflow)
            if new_status is not None:
                await self.repository.set_training_status(ctx.tenant_id, student.id, new_status)

            result = await self.repository.load_attempt(row)

        with_context(__name__, **ctx.log_context()).info(
            f"Submitted attempt {attempt_id}: score {score}/{total_marks}"
            + (f", status -> {new_status.value}" if new_status else "")
        )
        return result

    async def approve_final(self, ctx: TenantContext, student_id: int) -> StudentData:
        """
        Administrator approval that moves a student from training to the Final.

        Raises:
            AuthorizationError: Caller is not an administrator
            StudentNotFoundError: No such student in the tenant
            InvalidTransitionError: Student is not in training
        """
        if ctx.tenant_id is None:
            raise TenantContextError()
        if not ctx.is_admin:
            raise AuthorizationError("Administrator access required.")

        async with self._unit_of_work():
            student = await self.repository.get_student(ctx.tenant_id, student_id)
            if student is None:
                raise StudentNotFoundError(student_id, message=f"Student {student_id} not found")
            new_status = promote_to_final(student.training_status)
            await self.repository.set_training_status(ctx.tenant_id, student_id, new_status)
            result = await self.repository.get_student(ctx.tenant_id, student_id)

        with_context(__name__, **ctx.log_context()).info(
            f"Approved student {student_id} for the final assessment"
        )
        return result
