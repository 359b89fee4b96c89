"""
Reporting Repository

Read-only, tenant-scoped queries feeding the dashboards and reports. Only
submitted attempts are returned as scored records.
"""

import datetime
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from assessflow.assessments.models import AdaptiveModuleFilter, AssessmentData, ModuleData, ResponseData, StudentData
from assessflow.assessments.repository import (
    content_tree_loader,
    assessment_to_data,
    module_to_data,
    response_to_data,
    student_to_data,
)
from assessflow.assessments.scoring import percentage
from assessflow.common.logger import get_logger
from assessflow.database.models import Assessment, Attempt, College, Module, Question, Response, Student

logger = get_logger(__name__)


@dataclass(frozen=True)
class AttemptRecord:
    """An attempt as seen by reports; score fields are meaningful once submitted."""
    id: int
    student_id: int
    assessment_id: int
    started_at: datetime.datetime
    submitted_at: Optional[datetime.datetime]
    duration_sec: int
    score: float
    total_marks: float
    college_id: Optional[int] = None
    module_filter: Optional[AdaptiveModuleFilter] = None

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None

    @property
    def percentage(self) -> float:
        """Unrounded percentage of the attempt."""
        return (self.score or 0) / (self.total_marks or 1) * 100

    @property
    def rounded_percentage(self) -> int:
        return percentage(self.score, self.total_marks)


def _to_record(attempt: Attempt, college_id: Optional[int] = None) -> AttemptRecord:
    return AttemptRecord(
        id=attempt.id,
        student_id=attempt.student_id,
        assessment_id=attempt.assessment_id,
        started_at=attempt.started_at,
        submitted_at=attempt.submitted_at,
        duration_sec=attempt.duration_sec or 0,
        score=attempt.score or 0,
        total_marks=attempt.total_marks or 1,
        college_id=college_id,
        module_filter=AdaptiveModuleFilter.from_meta(attempt.meta),
    )


@dataclass(frozen=True)
class CollegeData:
    id: int
    name: str


@dataclass(frozen=True)
class UpcomingModule:
    module: ModuleData
    assessment_title: str


class ReportingRepository:
    """Queries over students, colleges, assessments and submitted attempts."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def list_colleges(self, tenant_id: int) -> List[CollegeData]:
        result = await self.session.execute(
            select(College.id, College.name).where(College.tenant_id == tenant_id).order_by(College.name)
        )
        return [CollegeData(id=row.id, name=row.name) for row in result]

    async def count_students(self, tenant_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Student.id)).where(Student.tenant_id == tenant_id)
        )
        return result.scalar_one()

    async def list_students(self, tenant_id: int, limit: Optional[int] = None) -> List[StudentData]:
        query = select(Student).where(Student.tenant_id == tenant_id).order_by(Student.id)
        if limit is not None:
            query = query.limit(limit)
        result = await self.session.execute(query)
        return [student_to_data(row) for row in result.scalars()]

    async def get_student(self, tenant_id: int, student_id: int) -> Optional[StudentData]:
        result = await self.session.execute(
            select(Student).where(Student.tenant_id == tenant_id, Student.id == student_id)
        )
        row = result.scalar_one_or_none()
        return student_to_data(row) if row else None

    async def search_students(self, tenant_id: int, term: Optional[str], limit: int = 10) -> List[StudentData]:
        """Students whose registration number or name contains ``term``."""
        query = select(Student).where(Student.tenant_id == tenant_id)
        if term:
            pattern = f"%{term}%"
            query = query.where(or_(Student.reg_no.ilike(pattern), Student.name.ilike(pattern)))
        result = await self.session.execute(query.order_by(Student.name, Student.id).limit(limit))
        return [student_to_data(row) for row in result.scalars()]

    async def student_counts_by_college(self, tenant_id: int) -> Dict[int, int]:
        result = await self.session.execute(
            select(Student.college_id, func.count(Student.id))
            .where(Student.tenant_id == tenant_id, Student.college_id.is_not(None))
            .group_by(Student.college_id)
        )
        return {college_id: count for college_id, count in result}

    async def count_active_assessments(self, tenant_id: int) -> int:
        result = await self.session.execute(
            select(func.count(Assessment.id)).where(
                Assessment.tenant_id == tenant_id, Assessment.is_active.is_(True)
            )
        )
        return result.scalar_one()

    async def load_assessments(self, tenant_id: int) -> Dict[int, AssessmentData]:
        """Every assessment of the tenant with its content tree, keyed by id."""
        result = await self.session.execute(
            select(Assessment)
            .where(Assessment.tenant_id == tenant_id)
            .options(content_tree_loader())
            .order_by(Assessment.order, Assessment.id)
        )
        return {row.id: assessment_to_data(row) for row in result.scalars()}

    async def upcoming_modules(
        self,
        tenant_id: int,
        start: datetime.datetime,
        end: datetime.datetime,
        limit: int = 10,
    ) -> List[UpcomingModule]:
        """Modules of active assessments whose ``end_at`` falls in [start, end]."""
        result = await self.session.execute(
            select(Module, Assessment.title)
            .join(Assessment, Module.assessment_id == Assessment.id)
            .where(
                Assessment.tenant_id == tenant_id,
                Assessment.is_active.is_(True),
                Module.end_at.between(start, end),
            )
            .options(selectinload(Module.questions).selectinload(Question.options))
            .order_by(Module.end_at)
            .limit(limit)
        )
        return [
            UpcomingModule(module=module_to_data(module), assessment_title=title)
            for module, title in result
        ]

    async def list_submitted_attempts(
        self,
        tenant_id: int,
        since: Optional[datetime.datetime] = None,
        until: Optional[datetime.datetime] = None,
        student_id: Optional[int] = None,
        assessment_id: Optional[int] = None,
    ) -> List[AttemptRecord]:
        """Submitted attempts, newest first."""
        query = (
            select(Attempt, Student.college_id)
            .join(Student, Attempt.student_id == Student.id)
            .where(Attempt.tenant_id == tenant_id, Attempt.submitted_at.is_not(None))
        )
        if since is not None:
            query = query.where(Attempt.submitted_at >= since)
        if until is not None:
            query = query.where(Attempt.submitted_at <= until)
        if student_id is not None:
            query = query.where(Attempt.student_id == student_id)
        if assessment_id is not None:
            query = query.where(Attempt.assessment_id == assessment_id)

        result = await self.session.execute(query.order_by(Attempt.submitted_at.desc(), Attempt.id.desc()))
        return [_to_record(attempt, college_id) for attempt, college_id in result]

    async def list_student_attempts(self, tenant_id: int, student_id: int) -> List[AttemptRecord]:
        """Every attempt of one student, submitted or not, oldest first."""
        result = await self.session.execute(
            select(Attempt)
            .where(Attempt.tenant_id == tenant_id, Attempt.student_id == student_id)
            .order_by(Attempt.started_at, Attempt.id)
        )
        return [_to_record(attempt) for attempt in result.scalars()]

    async def get_attempt_record(self, tenant_id: int, attempt_id: int) -> Optional[AttemptRecord]:
        records = await self.session.execute(
            select(Attempt).where(Attempt.tenant_id == tenant_id, Attempt.id == attempt_id)
        )
        attempt = records.scalar_one_or_none()
        return _to_record(attempt) if attempt is not None else None

    async def count_open_attempts_since(self, tenant_id: int, since: datetime.datetime) -> int:
        result = await self.session.execute(
            select(func.count(Attempt.id)).where(
                Attempt.tenant_id == tenant_id,
                Attempt.started_at >= since,
                Attempt.submitted_at.is_(None),
            )
        )
        return result.scalar_one()

    async def attempt_counts_by_student(self, tenant_id: int) -> Dict[int, int]:
        """Attempts of any state per student."""
        result = await self.session.execute(
            select(Attempt.student_id, func.count(Attempt.id))
            .where(Attempt.tenant_id == tenant_id)
            .group_by(Attempt.student_id)
        )
        return {student_id: count for student_id, count in result}

    async def distinct_attempters(self, tenant_id: int, assessment_id: int) -> int:
        result = await self.session.execute(
            select(func.count(func.distinct(Attempt.student_id))).where(
                Attempt.tenant_id == tenant_id, Attempt.assessment_id == assessment_id
            )
        )
        return result.scalar_one()

    async def responses_by_attempt(self, attempt_ids: Iterable[int]) -> Dict[int, Dict[int, ResponseData]]:
        """Responses keyed by attempt id, then question id."""
        ids = list(attempt_ids)
        grouped: Dict[int, Dict[int, ResponseData]] = {attempt_id: {} for attempt_id in ids}
        if not ids:
            return grouped
        result = await self.session.execute(
            select(Response).where(Response.attempt_id.in_(ids)).order_by(Response.id)
        )
        for row in result.scalars():
            grouped[row.attempt_id][row.question_id] = response_to_data(row)
        return grouped

    async def last_activity_by_student(self, tenant_id: int) -> Dict[int, datetime.datetime]:
        result = await self.session.execute(
            select(Attempt.student_id, func.max(Attempt.submitted_at))
            .where(Attempt.tenant_id == tenant_id, Attempt.submitted_at.is_not(None))
            .group_by(Attempt.student_id)
        )
        return {student_id: last for student_id, last in result}
