"""
Daily Summary API Endpoints
"""
from fastapi import APIRouter, Depends, status
from typing import List, Optional
from datetime import date as Date

from pydantic import BaseModel

from ...core.auth import get_current_user
from ...models.user import User
from ...services.snap_service import SnapService
from .deps import get_snap_service
from .schemas import SummaryResponse

router = APIRouter()


class SummaryGenerateRequest(BaseModel):
    sprint_id: int
    date: Date


@router.post("/generate", response_model=SummaryResponse, status_code=status.HTTP_201_CREATED)
async def generate_summary(
    request: SummaryGenerateRequest,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    """Generate the day's summary, or return the one already generated"""
    return await service.generate_summary(request.sprint_id, request.date)


@router.get("/project/{project_id}", response_model=List[SummaryResponse])
async def get_project_summaries(
    project_id: int,
    sprint_id: Optional[int] = None,
    start_date: Optional[Date] = None,
    end_date: Optional[Date] = None,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    """Summaries across a project's sprints, newest first"""
    return await service.get_summaries_by_project(project_id, sprint_id, start_date, end_date)


@router.get("/{sprint_id}/{date}", response_model=SummaryResponse)
async def get_summary(
    sprint_id: int,
    date: Date,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_summary(sprint_id, date)
