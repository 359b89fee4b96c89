"""
Assessment Repository

Database access for the workflow and attempt lifecycle. Reads return the
immutable domain models from ``assessflow.assessments.models``; writes are
limited to attempts, responses and the student's training status.

The repository works on the caller's session and never commits: transaction
boundaries belong to ``AttemptLifecycleManager``.
"""

import datetime
from typing import List, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from assessflow.assessments.models import (
    AdaptiveModuleFilter,
    AssessmentData,
    AssessmentSummary,
    AttemptData,
    ModuleData,
    OptionData,
    QuestionData,
    QuestionType,
    ResponseData,
    StudentData,
    TrainingStatus,
    WorkflowAssessments,
)
from assessflow.assessments.workflow import resolve_workflow_assessments
from assessflow.common.auth.context import TenantContext
from assessflow.common.logger import get_logger
from assessflow.database.base import utcnow
from assessflow.database.models import (
    Assessment,
    Attempt,
    Module,
    Question,
    Response,
    Student,
)

logger = get_logger(__name__)


# Row -> domain model conversion


def option_to_data(row) -> OptionData:
    return OptionData(id=row.id, label=row.label, text=row.text, is_correct=bool(row.is_correct))


def question_to_data(row: Question) -> QuestionData:
    return QuestionData(
        id=row.id,
        module_id=row.module_id,
        stem=row.stem,
        type=QuestionType.parse(row.type),
        points=row.points,
        topic=row.topic,
        difficulty=row.difficulty,
        options=tuple(option_to_data(option) for option in sorted(row.options, key=lambda o: o.id)),
    )


def module_to_data(row: Module) -> ModuleData:
    return ModuleData(
        id=row.id,
        assessment_id=row.assessment_id,
        title=row.title,
        order=row.order or 0,
        code=row.code,
        start_at=row.start_at,
        end_at=row.end_at,
        time_limit_min=row.per_student_time_limit_min,
        questions=tuple(question_to_data(q) for q in sorted(row.questions, key=lambda q: q.id)),
    )


def assessment_to_data(row: Assessment) -> AssessmentData:
    modules = sorted(row.modules, key=lambda m: (m.order or 0, m.id))
    return AssessmentData(
        id=row.id,
        title=row.title,
        order=row.order or 0,
        type=row.type,
        instructions=row.instructions,
        is_active=bool(row.is_active),
        modules=tuple(module_to_data(module) for module in modules),
    )


def response_to_data(row: Response) -> ResponseData:
    return ResponseData(
        id=row.id,
        question_id=row.question_id,
        option_id=row.option_id,
        text_answer=row.text_answer,
    )


def student_to_data(row: Student) -> StudentData:
    return StudentData(
        id=row.id,
        tenant_id=row.tenant_id,
        reg_no=row.reg_no,
        name=row.name,
        training_status=TrainingStatus.parse(row.training_status),
        stored_status=row.training_status,
        college_id=row.college_id,
        email=row.email,
        user_id=row.user_id,
    )


def content_tree_loader():
    return selectinload(Assessment.modules).selectinload(Module.questions).selectinload(Question.options)


class AssessmentRepository:
    """Tenant-scoped queries over the content tree, attempts and responses."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Students

    async def _student_row(self, tenant_id: int, student_id: int) -> Optional[Student]:
        result = await self.session.execute(
            select(Student).where(Student.tenant_id == tenant_id, Student.id == student_id)
        )
        return result.scalar_one_or_none()

    async def get_student(self, tenant_id: int, student_id: int) -> Optional[StudentData]:
        row = await self._student_row(tenant_id, student_id)
        return student_to_data(row) if row else None

    async def find_student_for_user(self, tenant_id: int, user_id: str) -> Optional[StudentData]:
        result = await self.session.execute(
            select(Student)
            .where(Student.tenant_id == tenant_id, Student.user_id == user_id)
            .order_by(Student.id)
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return student_to_data(row) if row else None

    async def find_student(self, ctx: TenantContext) -> Optional[StudentData]:
        """Student profile of the caller, by token ``student_id`` or by user id."""
        if ctx.tenant_id is None:
            return None
        if ctx.student_id is not None:
            return await self.get_student(ctx.tenant_id, ctx.student_id)
        return await self.find_student_for_user(ctx.tenant_id, ctx.user_id)

    async def set_training_status(self, tenant_id: int, student_id: int, status: TrainingStatus) -> None:
        row = await self._student_row(tenant_id, student_id)
        if row is None:
            raise LookupError(f"Student {student_id} not found in tenant {tenant_id}")
        row.training_status = status.value
        await self.session.flush()

    # Content

    async def list_assessment_summaries(self, tenant_id: int) -> List[AssessmentSummary]:
        result = await self.session.execute(
            select(Assessment.id, Assessment.title, Assessment.order)
            .where(Assessment.tenant_id == tenant_id)
            .order_by(Assessment.order, Assessment.id)
        )
        return [AssessmentSummary(id=row.id, title=row.title, order=row.order or 0) for row in result]

    async def get_workflow(self, tenant_id: int) -> WorkflowAssessments:
        return resolve_workflow_assessments(await self.list_assessment_summaries(tenant_id))

    async def get_assessment(self, tenant_id: int, assessment_id: int) -> Optional[AssessmentData]:
        result = await self.session.execute(
            select(Assessment)
            .where(Assessment.tenant_id == tenant_id, Assessment.id == assessment_id)
            .options(content_tree_loader())
        )
        row = result.scalar_one_or_none()
        return assessment_to_data(row) if row else None

    async def find_question(self, tenant_id: int, question_id: int) -> Optional[Tuple[QuestionData, int]]:
        """Question plus the id of the assessment it belongs to."""
        result = await self.session.execute(
            select(Question, Module.assessment_id)
            .join(Module, Question.module_id == Module.id)
            .where(Question.tenant_id == tenant_id, Question.id == question_id)
            .options(selectinload(Question.options))
        )
        row = result.first()
        if row is None:
            return None
        question, assessment_id = row
        return question_to_data(question), assessment_id

    # Attempts

    async def _find_attempt_row(self, tenant_id: int, assessment_id: int, student_id: int) -> Optional[Attempt]:
        result = await self.session.execute(
            select(Attempt).where(
                Attempt.tenant_id == tenant_id,
                Attempt.assessment_id == assessment_id,
                Attempt.student_id == student_id,
            )
        )
        return result.scalar_one_or_none()

    async def _attempt_row(self, tenant_id: int, attempt_id: int) -> Optional[Attempt]:
        result = await self.session.execute(
            select(Attempt).where(Attempt.tenant_id == tenant_id, Attempt.id == attempt_id)
        )
        return result.scalar_one_or_none()

    async def get_or_create_attempt(
        self,
        tenant_id: int,
        student_id: int,
        assessment_id: int,
        module_filter: Optional[AdaptiveModuleFilter] = None,
    ) -> Tuple[Attempt, bool]:
        """
        Find the attempt for (tenant, assessment, student) or insert it.

        The insert runs in a SAVEPOINT so a concurrent insert that wins the
        unique constraint only rolls back the savepoint; the winner's row is
        then returned. Returns ``(row, created)``.
        """
        row = await self._find_attempt_row(tenant_id, assessment_id, student_id)
        if row is not None:
            return row, False

        candidate = Attempt(
            tenant_id=tenant_id,
            assessment_id=assessment_id,
            student_id=student_id,
            started_at=utcnow(),
            duration_sec=0,
            meta=module_filter.to_meta() if module_filter else None,
        )
        try:
            async with self.session.begin_nested():
                self.session.add(candidate)
        except IntegrityError:
            logger.info(
                f"Attempt for student {student_id} on assessment {assessment_id} created concurrently, reusing it"
            )
            row = await self._find_attempt_row(tenant_id, assessment_id, student_id)
            if row is None:
                raise
            return row, False

        logger.info(f"Created attempt {candidate.id} for student {student_id} on assessment {assessment_id}")
        return candidate, True

    async def get_attempt_row(self, tenant_id: int, attempt_id: int) -> Optional[Attempt]:
        return await self._attempt_row(tenant_id, attempt_id)

    async def list_responses(self, attempt_id: int) -> List[ResponseData]:
        result = await self.session.execute(
            select(Response)
            .where(Response.attempt_id == attempt_id)
            .order_by(Response.id)
            .execution_options(populate_existing=True)
        )
        return [response_to_data(row) for row in result.scalars()]

    async def load_attempt(self, row: Attempt) -> AttemptData:
        """Attempt with its (filtered) content tree and current responses."""
        full_assessment = await self.get_assessment(row.tenant_id, row.assessment_id)
        if full_assessment is None:
            raise LookupError(f"Assessment {row.assessment_id} of attempt {row.id} is missing")
        module_filter = AdaptiveModuleFilter.from_meta(row.meta)
        return AttemptData(
            id=row.id,
            tenant_id=row.tenant_id,
            assessment_id=row.assessment_id,
            student_id=row.student_id,
            started_at=row.started_at,
            submitted_at=row.submitted_at,
            duration_sec=row.duration_sec or 0,
            score=row.score,
            total_marks=row.total_marks,
            module_filter=module_filter,
            assessment=full_assessment.restricted_to(module_filter),
            full_assessment=full_assessment,
            responses=tuple(await self.list_responses(row.id)),
        )

    async def latest_submitted_attempt(
        self, tenant_id: int, student_id: int, assessment_id: int
    ) -> Optional[AttemptData]:
        result = await self.session.execute(
            select(Attempt)
            .where(
                Attempt.tenant_id == tenant_id,
                Attempt.student_id == student_id,
                Attempt.assessment_id == assessment_id,
                Attempt.submitted_at.is_not(None),
            )
            .order_by(Attempt.submitted_at.desc(), Attempt.id.desc())
            .limit(1)
        )
        row = result.scalar_one_or_none()
        return await self.load_attempt(row) if row else None

    async def mark_submitted(
        self,
        row: Attempt,
        score: float,
        total_marks: float,
        submitted_at: datetime.datetime,
    ) -> bool:
        """
        Finalize an attempt once.

        The update only matches while ``submitted_at`` is still NULL, so of two
        concurrent submissions exactly one succeeds. Returns whether this call won.
        """
        duration_sec = max(0, int((submitted_at - row.started_at).total_seconds()))
        result = await self.session.execute(
            update(Attempt)
            .where(Attempt.id == row.id, Attempt.submitted_at.is_(None))
            .values(
                score=score,
                total_marks=total_marks,
                submitted_at=submitted_at,
                duration_sec=duration_sec,
            )
            .execution_options(synchronize_session=False)
        )
        await self.session.refresh(row)
        return result.rowcount == 1

    # Responses

    async def _response_row(self, attempt_id: int, question_id: int) -> Optional[Response]:
        result = await self.session.execute(
            select(Response).where(Response.attempt_id == attempt_id, Response.question_id == question_id)
        )
        return result.scalar_one_or_none()

    async def upsert_response(
        self,
        attempt_id: int,
        question_id: int,
        option_id: Optional[int],
        text_answer: Optional[str],
    ) -> ResponseData:
        """Create or overwrite the single response for (attempt, question)."""
        row = await self._response_row(attempt_id, question_id)
        if row is None:
            candidate = Response(
                attempt_id=attempt_id,
                question_id=question_id,
                option_id=option_id,
                text_answer=text_answer,
            )
            try:
                async with self.session.begin_nested():
                    self.session.add(candidate)
                return response_to_data(candidate)
            except IntegrityError:
                row = await self._response_row(attempt_id, question_id)
                if row is None:
                    raise

        row.option_id = option_id
        row.text_answer = text_answer
        row.updated_at = utcnow()
        await self.session.flush()
        return response_to_data(row)
