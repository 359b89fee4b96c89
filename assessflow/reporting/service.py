"""
Reporting Service

Administrator-facing reports: the tenant overview, a single student's report,
the breakdown of one attempt and the student search box. Everything is read
from submitted attempts; nothing here writes.
"""

import datetime
from collections import defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from sqlalchemy.ext.asyncio import AsyncSession

from assessflow.assessments.models import AssessmentData, QuestionData, ResponseData
from assessflow.assessments.scoring import is_response_correct, percentage, round_half_up
from assessflow.common.auth.context import TenantContext
from assessflow.common.error_handling import AttemptNotFoundError, StudentNotFoundError
from assessflow.common.logger import get_logger, log_execution_time
from assessflow.config import settings
from assessflow.database.base import utcnow
from assessflow.reporting.aggregator import (
    average,
    build_daily_average_trend,
    count_at_risk,
    format_duration,
    percentile_rank,
    performance_status,
    resolve_report_range,
    summarize_topics,
)
from assessflow.reporting.repository import AttemptRecord, ReportingRepository

logger = get_logger(__name__)

ACTIVE_WINDOW = datetime.timedelta(hours=2)
STUDENT_LIST_LIMIT = 50
SEARCH_LIMIT = 10


def _isoformat(value: Optional[datetime.datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def question_index(assessments: Iterable[AssessmentData]) -> Dict[int, QuestionData]:
    return {question.id: question for assessment in assessments for question in assessment.questions}


def topic_outcomes(
    responses: Iterable[ResponseData],
    questions: Mapping[int, QuestionData],
) -> List[Tuple[str, bool]]:
    """``(topic, correct)`` for every answered question that has a topic."""
    outcomes = []
    for response in responses:
        question = questions.get(response.question_id)
        if question is None or not question.topic:
            continue
        outcomes.append((question.topic, is_response_correct(question, response.option_id, response.text_answer)))
    return outcomes


def student_averages(attempts: Iterable[AttemptRecord]) -> Dict[int, float]:
    """Average attempt percentage per student."""
    grouped: Dict[int, List[float]] = defaultdict(list)
    for attempt in attempts:
        grouped[attempt.student_id].append(attempt.percentage)
    return {student_id: sum(values) / len(values) for student_id, values in grouped.items()}


class ReportingService:
    """
    Tenant-scoped report builder.

    Args:
        session: Request-scoped database session
        repository: Optional repository, built from ``session`` when omitted
        at_risk_threshold: Percentage under which a student counts as at risk
    """

    def __init__(
        self,
        session: AsyncSession,
        repository: Optional[ReportingRepository] = None,
        at_risk_threshold: Optional[float] = None,
        excelling_threshold: Optional[float] = None,
    ):
        self.session = session
        self.repository = repository or ReportingRepository(session)
        self.at_risk_threshold = (
            at_risk_threshold if at_risk_threshold is not None else settings.AT_RISK_THRESHOLD
        )
        self.excelling_threshold = (
            excelling_threshold if excelling_threshold is not None else settings.EXCELLING_THRESHOLD
        )

    def _status(self, average_pct: Optional[float], attempt_count: int) -> str:
        return performance_status(average_pct, attempt_count, self.at_risk_threshold, self.excelling_threshold)

    async def _weak_points(self, tenant_id: int, attempts: List[AttemptRecord]) -> List[Dict[str, Any]]:
        if not attempts:
            return []
        questions = question_index((await self.repository.load_assessments(tenant_id)).values())
        responses = await self.repository.responses_by_attempt(attempt.id for attempt in attempts)
        outcomes = []
        for by_question in responses.values():
            outcomes.extend(topic_outcomes(by_question.values(), questions))
        return summarize_topics(outcomes)

    @log_execution_time(logger)
    async def overview(self, ctx: TenantContext, time_range: Optional[str] = None) -> Dict[str, Any]:
        """
        Tenant overview for the reports page.

        Args:
            ctx: Administrator context
            time_range: ``today`` | ``7d`` | ``30d`` | ``all``; defaults to the last 7 days

        Returns:
            KPIs, daily trend, weak topics, per-assessment stats and the student list
        """
        tenant_id = ctx.tenant_id
        now = utcnow()
        since = resolve_report_range(time_range, now)

        total_students = await self.repository.count_students(tenant_id)
        active_now = await self.repository.count_open_attempts_since(tenant_id, now - ACTIVE_WINDOW)

        all_attempts = await self.repository.list_submitted_attempts(tenant_id)
        window = [a for a in all_attempts if since is None or a.submitted_at >= since]
        averages = student_averages(all_attempts)

        window_average = average(a.percentage for a in window)
        kpis = {
            "total_students": total_students,
            "active_now": active_now,
            "avg_performance": round_half_up(window_average) if window_average is not None else 0,
            "at_risk_count": count_at_risk(averages.values(), self.at_risk_threshold),
        }

        trend = build_daily_average_trend((a.submitted_at, a.percentage) for a in window)
        weak_points = await self._weak_points(tenant_id, all_attempts)

        assessments = await self.repository.load_assessments(tenant_id)
        assessment_stats = []
        for assessment in assessments.values():
            if not assessment.is_active:
                continue
            attempters = await self.repository.distinct_attempters(tenant_id, assessment.id)
            scores = [a.percentage for a in all_attempts if a.assessment_id == assessment.id]
            avg_score = average(scores)
            assessment_stats.append({
                "id": assessment.id,
                "title": assessment.title,
                "completion_rate": round_half_up(attempters / total_students * 100) if total_students else 0,
                "avg_score": round_half_up(avg_score) if avg_score is not None else 0,
            })

        attempt_counts = await self.repository.attempt_counts_by_student(tenant_id)
        last_active = await self.repository.last_activity_by_student(tenant_id)
        student_performances = []
        for student in await self.repository.list_students(tenant_id, limit=STUDENT_LIST_LIMIT):
            student_average = averages.get(student.id)
            student_performances.append({
                "id": student.id,
                "name": student.name,
                "reg_no": student.reg_no,
                "avg_score": round_half_up(student_average) if student_average is not None else 0,
                "total_attempts": attempt_counts.get(student.id, 0),
                "last_active": _isoformat(last_active.get(student.id)),
                "status": self._status(student_average, attempt_counts.get(student.id, 0)),
            })

        return {
            "kpis": kpis,
            "trend": trend,
            "weak_points": weak_points,
            "assessment_stats": assessment_stats,
            "student_performances": student_performances,
        }

    async def student_report(self, ctx: TenantContext, student_id: int) -> Dict[str, Any]:
        """
        One student's profile, statistics, attempt history and weak topics.

        Raises:
            StudentNotFoundError: No such student in the tenant
        """
        tenant_id = ctx.tenant_id
        student = await self.repository.get_student(tenant_id, student_id)
        if student is None:
            raise StudentNotFoundError(student_id, message=f"Student {student_id} not found")

        all_attempts = await self.repository.list_submitted_attempts(tenant_id)
        attempts = [a for a in all_attempts if a.student_id == student_id]
        assessments = await self.repository.load_assessments(tenant_id)

        cohort_scores: Dict[int, List[float]] = defaultdict(list)
        for attempt in all_attempts:
            cohort_scores[attempt.assessment_id].append(attempt.percentage)

        history = []
        for attempt in attempts:
            assessment = assessments.get(attempt.assessment_id)
            cohort_average = average(cohort_scores[attempt.assessment_id])
            history.append({
                "id": attempt.id,
                "assessment": assessment.title if assessment else None,
                "assessment_id": attempt.assessment_id,
                "score_obtained": attempt.score,
                "total_mark": attempt.total_marks,
                "score": attempt.rounded_percentage,
                "cohort_avg": round_half_up(cohort_average) if cohort_average is not None else 0,
                "date": _isoformat(attempt.submitted_at),
                "duration": format_duration(attempt.duration_sec),
            })

        own_average = average(a.percentage for a in attempts)
        cohort = list(student_averages(all_attempts).values())

        return {
            "student": student.to_dict(),
            "stats": {
                "avg_score": round_half_up(own_average) if own_average is not None else 0,
                "total_attempts": len(attempts),
                "percentile": percentile_rank(own_average, cohort),
                "status": self._status(own_average, len(attempts)),
            },
            "history": history,
            "weak_points": await self._weak_points(tenant_id, attempts),
        }

    async def attempt_details(self, ctx: TenantContext, attempt_id: int) -> Dict[str, Any]:
        """
        Per-question breakdown of one attempt with the canonical answers.

        Raises:
            AttemptNotFoundError: No such attempt in the tenant
        """
        tenant_id = ctx.tenant_id
        record = await self.repository.get_attempt_record(tenant_id, attempt_id)
        if record is None:
            raise AttemptNotFoundError(attempt_id)

        assessment = (await self.repository.load_assessments(tenant_id)).get(record.assessment_id)
        responses = (await self.repository.responses_by_attempt([attempt_id]))[attempt_id]
        student = await self.repository.get_student(tenant_id, record.student_id)

        rows = []
        for response in responses.values():
            question = assessment.find_question(response.question_id) if assessment else None
            if question is None:
                continue
            selected = question.find_option(response.option_id)
            canonical = question.canonical_option
            rows.append({
                "id": response.id,
                "question": {
                    "id": question.id,
                    "text": question.stem,
                    "type": question.type.value,
                    "points": question.points,
                    "topic": question.topic,
                },
                "option": selected.to_dict(include_answer=True) if selected else None,
                "text_answer": response.text_answer,
                "is_correct": is_response_correct(question, response.option_id, response.text_answer),
                "correct_text": (canonical.text or canonical.label) if canonical else None,
            })

        return {
            "id": record.id,
            "student": student.to_dict() if student else None,
            "assessment": {
                "id": record.assessment_id,
                "title": assessment.title if assessment else None,
                "total_mark": record.total_marks if record.is_submitted else None,
            },
            "started_at": _isoformat(record.started_at),
            "submitted_at": _isoformat(record.submitted_at),
            "score_obtained": record.score if record.is_submitted else None,
            "score": percentage(record.score, record.total_marks) if record.is_submitted else None,
            "duration": format_duration(record.duration_sec),
            "responses": rows,
        }

    async def search(self, ctx: TenantContext, term: Optional[str]) -> List[Dict[str, Any]]:
        """Autocomplete entries for students matching ``term`` by registration number or name."""
        term = (term or "").strip()
        students = await self.repository.search_students(ctx.tenant_id, term or None, limit=SEARCH_LIMIT)
        return [
            {"id": student.id, "label": f"{student.name} ({student.reg_no})", "value": student.id}
            for student in students
        ]
