"""
Dashboard API Controller

``GET /dashboard/student`` for the calling student and
``GET /dashboard/admin`` for tenant administrators. Both wrap their payload in
``{"data": ...}``.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from assessflow.common.auth.context import TenantContext
from assessflow.common.auth.dependencies import require_admin, require_student
from assessflow.dashboard.service import DashboardService
from assessflow.database.init_db import get_async_db

router = APIRouter()


def get_dashboard_service(session: AsyncSession = Depends(get_async_db)) -> DashboardService:
    return DashboardService(session)


@router.get("/dashboard/student")
async def student_dashboard(
    ctx: TenantContext = Depends(require_student),
    service: DashboardService = Depends(get_dashboard_service),
) -> Dict[str, Any]:
    return {"data": await service.student_dashboard(ctx)}


@router.get("/dashboard/admin")
async def admin_dashboard(
    timeframe: Optional[str] = Query("today", description="today | 7d | 30d"),
    ctx: TenantContext = Depends(require_admin),
    service: DashboardService = Depends(get_dashboard_service),
) -> Dict[str, Any]:
    """KPIs, trend, deadlines, recent submissions and distributions for the timeframe."""
    return {"data": await service.admin_dashboard(ctx, timeframe)}
