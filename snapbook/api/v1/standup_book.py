"""
Standup Book API Endpoints

Day/slot locking and the day-by-day views of a sprint
"""
from fastapi import APIRouter, Depends, status
from typing import List, Optional
from datetime import date as Date

from pydantic import BaseModel, Field

from ...core.auth import get_current_user, get_current_scrum_master
from ...models.user import User
from ...services.snap_service import SnapService
from ...services.standup_book_service import DayMetadata, SprintDay, StandupBookService
from .deps import get_snap_service, get_standup_book_service
from .schemas import LockResponse, SlotGroupResponse, SprintResponse

router = APIRouter()


class LockDayRequest(BaseModel):
    sprint_id: int
    date: Date


class LockSlotRequest(BaseModel):
    sprint_id: int
    date: Date
    slot_number: int = Field(..., ge=1)


class LockStatusResponse(BaseModel):
    sprint_id: int
    date: Date
    slot_number: Optional[int]
    is_locked: bool


@router.post("/lock-day", response_model=LockResponse, status_code=status.HTTP_201_CREATED)
async def lock_day(
    request: LockDayRequest,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_scrum_master)
):
    """
    Lock a whole sprint day

    Freezes every snap of the day, records each card's RAG for the day and
    generates the daily summary. A day can only be locked once.
    """
    return await service.lock_day(request.sprint_id, request.date, current_user.id)


@router.post("/lock-slot", response_model=LockResponse, status_code=status.HTTP_201_CREATED)
async def lock_slot(
    request: LockSlotRequest,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_scrum_master)
):
    """Lock one standup slot of a day"""
    return await service.lock_slot(request.sprint_id, request.date, request.slot_number, current_user.id)


@router.delete("/lock", status_code=status.HTTP_204_NO_CONTENT)
async def unlock(
    sprint_id: int,
    date: Date,
    slot_number: Optional[int] = None,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_scrum_master)
):
    """Administrative unlock; snaps frozen by the lock stay frozen"""
    await service.unlock(sprint_id, date, slot_number)


@router.get("/is-locked/{sprint_id}/{date}", response_model=LockStatusResponse)
async def is_locked(
    sprint_id: int,
    date: Date,
    slot_number: Optional[int] = None,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    locked = await service.is_locked(sprint_id, date, slot_number)
    return {"sprint_id": sprint_id, "date": date, "slot_number": slot_number, "is_locked": locked}


@router.get("/daily-lock/{sprint_id}/{date}", response_model=Optional[LockResponse])
async def get_daily_lock(
    sprint_id: int,
    date: Date,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_daily_lock(sprint_id, date)


@router.get("/locks/{sprint_id}/{date}", response_model=List[LockResponse])
async def get_locks_for_day(
    sprint_id: int,
    date: Date,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    """Day lock first, then slot locks in slot order"""
    return await service.get_all_locks_for_day(sprint_id, date)


@router.get("/active-sprint/{project_id}", response_model=Optional[SprintResponse])
async def get_active_sprint(
    project_id: int,
    book: StandupBookService = Depends(get_standup_book_service),
    current_user: User = Depends(get_current_user)
):
    return await book.get_active_sprint(project_id)


@router.get("/sprint-days/{sprint_id}", response_model=List[SprintDay])
async def get_sprint_days(
    sprint_id: int,
    book: StandupBookService = Depends(get_standup_book_service),
    current_user: User = Depends(get_current_user)
):
    return await book.get_sprint_days(sprint_id)


@router.get("/day-metadata/{sprint_id}/{date}", response_model=DayMetadata)
async def get_day_metadata(
    sprint_id: int,
    date: Date,
    book: StandupBookService = Depends(get_standup_book_service),
    current_user: User = Depends(get_current_user)
):
    return await book.get_day_metadata(sprint_id, date)


@router.get("/snaps-by-slots/{sprint_id}/{date}", response_model=List[SlotGroupResponse])
async def get_snaps_by_slots(
    sprint_id: int,
    date: Date,
    book: StandupBookService = Depends(get_standup_book_service),
    current_user: User = Depends(get_current_user)
):
    return await book.get_snaps_grouped_by_slots(sprint_id, date)
