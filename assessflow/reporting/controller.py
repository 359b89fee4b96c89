"""
Reports API Controller

Administrator endpoints under ``/reports``: tenant overview, per-student
report, attempt breakdown, student search and the approval that unlocks the
Final assessment for a student in training.
"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from assessflow.assessments.lifecycle import AttemptLifecycleManager
from assessflow.common.auth.context import TenantContext
from assessflow.common.auth.dependencies import require_admin
from assessflow.common.logger import app_logger
from assessflow.database.init_db import get_async_db
from assessflow.reporting.service import ReportingService

logger = app_logger.getChild("reporting.controller")

router = APIRouter(prefix="/reports")


def get_reporting_service(session: AsyncSession = Depends(get_async_db)) -> ReportingService:
    return ReportingService(session)


@router.get("/overview")
async def reports_overview(
    time_range: Optional[str] = Query("7d", alias="timeRange", description="today | 7d | 30d | all"),
    ctx: TenantContext = Depends(require_admin),
    service: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    return await service.overview(ctx, time_range)


@router.get("/student/{student_id}")
async def student_report(
    student_id: int = Path(..., gt=0),
    ctx: TenantContext = Depends(require_admin),
    service: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    return await service.student_report(ctx, student_id)


@router.get("/attempts/{attempt_id}")
async def attempt_details(
    attempt_id: int = Path(..., gt=0),
    ctx: TenantContext = Depends(require_admin),
    service: ReportingService = Depends(get_reporting_service),
) -> Dict[str, Any]:
    """Per-question correctness of one attempt."""
    return await service.attempt_details(ctx, attempt_id)


@router.get("/search")
async def search_students(
    q: Optional[str] = Query(None, max_length=100),
    ctx: TenantContext = Depends(require_admin),
    service: ReportingService = Depends(get_reporting_service),
) -> List[Dict[str, Any]]:
    return await service.search(ctx, q)


@router.post("/student/{student_id}/approve-final")
async def approve_final(
    student_id: int = Path(..., gt=0),
    ctx: TenantContext = Depends(require_admin),
    session: AsyncSession = Depends(get_async_db),
) -> Dict[str, Any]:
    """Move a student from training to ``ready_for_final``."""
    student = await AttemptLifecycleManager(session).approve_final(ctx, student_id)
    logger.info(f"Final assessment unlocked for student {student_id} by {ctx.user_id}")
    return {"message": "approved", "student": student.to_dict()}
