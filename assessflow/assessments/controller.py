"""
Attempt API Controller

Student-facing endpoints: resolve the current attempt, start a named
assessment, save answers and submit. Domain errors propagate to the
application's ``AssessFlowError`` handler.
"""

from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Path
from pydantic import BaseModel, Field, model_validator
from sqlalchemy.ext.asyncio import AsyncSession

from assessflow.assessments.lifecycle import AttemptLifecycleManager
from assessflow.common.auth.context import TenantContext
from assessflow.common.auth.dependencies import require_student, require_tenant
from assessflow.common.logger import get_logger
from assessflow.database.init_db import get_async_db

logger = get_logger(__name__)

router = APIRouter()


class SaveProgressRequest(BaseModel):
    """One answer: an option for MCQ/BOOLEAN or free text for TEXT questions."""
    question_id: int = Field(..., gt=0)
    option_id: Optional[int] = Field(None, gt=0)
    text_answer: Optional[str] = Field(None, max_length=10000)

    @model_validator(mode="after")
    def require_an_answer_field(self) -> "SaveProgressRequest":
        if self.option_id is None and self.text_answer is None:
            raise ValueError("Either option_id or text_answer must be provided")
        return self


def get_lifecycle_manager(session: AsyncSession = Depends(get_async_db)) -> AttemptLifecycleManager:
    return AttemptLifecycleManager(session)


@router.post("/assessment/attempt")
async def start_current_attempt(
    ctx: TenantContext = Depends(require_student),
    manager: AttemptLifecycleManager = Depends(get_lifecycle_manager),
) -> Dict[str, Any]:
    """Create or resume the attempt the student's workflow stage calls for."""
    attempt = await manager.start_current(ctx)
    return attempt.to_dict()


@router.post("/assessments/{assessment_id}/attempts")
async def start_assessment_attempt(
    assessment_id: int = Path(..., gt=0),
    ctx: TenantContext = Depends(require_student),
    manager: AttemptLifecycleManager = Depends(get_lifecycle_manager),
) -> Dict[str, Any]:
    """Create or resume an attempt for a specific assessment, bypassing the workflow."""
    attempt = await manager.start_explicit(ctx, assessment_id)
    return attempt.to_dict()


@router.post("/attempts/{attempt_id}/save")
async def save_progress(
    request: SaveProgressRequest,
    attempt_id: int = Path(..., gt=0),
    ctx: TenantContext = Depends(require_tenant),
    manager: AttemptLifecycleManager = Depends(get_lifecycle_manager),
) -> Dict[str, Any]:
    await manager.save_progress(
        ctx,
        attempt_id,
        request.question_id,
        option_id=request.option_id,
        text_answer=request.text_answer,
    )
    return {"message": "saved"}


@router.post("/attempts/{attempt_id}/submit")
async def submit_attempt(
    attempt_id: int = Path(..., gt=0),
    ctx: TenantContext = Depends(require_tenant),
    manager: AttemptLifecycleManager = Depends(get_lifecycle_manager),
) -> Dict[str, Any]:
    """Score the attempt and advance the student's workflow."""
    attempt = await manager.submit(ctx, attempt_id)
    return attempt.to_dict()
