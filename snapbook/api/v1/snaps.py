"""
Snap API Endpoints

Create, edit and inspect per-card standup snaps
"""
from fastapi import APIRouter, Depends, status
from typing import List, Optional
from datetime import date as Date

from pydantic import BaseModel, Field

from ...core.auth import get_current_user, get_current_scrum_master
from ...models.enums import RAGStatus
from ...models.user import User
from ...services.rag_engine import SystemRAGSuggestion
from ...services.snap_service import SnapService, SnapUpdate
from ...services.text_classifier import ParsedSnap
from .deps import get_snap_service
from .schemas import SnapResponse

router = APIRouter()


class SnapCreateRequest(BaseModel):
    card_id: int
    raw_input: str = Field(..., min_length=1, description="Free-text standup update")
    done: Optional[str] = None
    to_do: Optional[str] = None
    blockers: Optional[str] = None
    suggested_rag: Optional[RAGStatus] = None
    final_rag: Optional[RAGStatus] = None
    slot_number: Optional[int] = Field(None, ge=1)


class SnapParseRequest(BaseModel):
    card_id: int
    raw_input: str = Field(..., min_length=1)


class SnapUpdateRequest(SnapUpdate):
    regenerate: bool = Field(False, description="Re-run the classifier on the raw text")


class RAGOverrideRequest(BaseModel):
    rag: RAGStatus
    notes: Optional[str] = None


@router.post("", response_model=SnapResponse, status_code=status.HTTP_201_CREATED)
async def create_snap(
    request: SnapCreateRequest,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    """
    Create today's snap for a card

    Structured fields supplied by the caller are used as-is; otherwise the raw
    text is classified (with the keyword fallback when the LLM is unavailable).
    """
    return await service.create_snap(
        card_id=request.card_id,
        author_id=current_user.id,
        raw_input=request.raw_input,
        done=request.done,
        to_do=request.to_do,
        blockers=request.blockers,
        suggested_rag=request.suggested_rag,
        final_rag=request.final_rag,
        slot_number=request.slot_number,
    )


@router.post("/parse", response_model=ParsedSnap)
async def parse_snap(
    request: SnapParseRequest,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    """Classify raw text for preview without saving anything"""
    return await service.parse_only(request.card_id, request.raw_input)


@router.get("/card/{card_id}", response_model=List[SnapResponse])
async def get_card_snaps(
    card_id: int,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_snaps_for_card(card_id)


@router.get("/sprint/{sprint_id}/date/{date}", response_model=List[SnapResponse])
async def get_sprint_snaps_for_date(
    sprint_id: int,
    date: Date,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_snaps_for_sprint_and_date(sprint_id, date)


@router.get("/{snap_id}", response_model=SnapResponse)
async def get_snap(
    snap_id: int,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_snap(snap_id)


@router.patch("/{snap_id}", response_model=SnapResponse)
async def update_snap(
    snap_id: int,
    request: SnapUpdateRequest,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    """Edit one of your own snaps from today, while the day is still open"""
    changes = SnapUpdate(**request.model_dump(exclude_unset=True, exclude={"regenerate"}))
    return await service.update_snap(snap_id, current_user.id, changes, regenerate=request.regenerate)


@router.delete("/{snap_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_snap(
    snap_id: int,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    await service.delete_snap(snap_id, current_user.id)


@router.post("/{snap_id}/override-rag", response_model=SnapResponse)
async def override_snap_rag(
    snap_id: int,
    request: RAGOverrideRequest,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_scrum_master)
):
    """Scrum Master override of a snap's final RAG"""
    return await service.override_rag(snap_id, request.rag, current_user.id, request.notes)


@router.get("/{snap_id}/system-rag", response_model=SystemRAGSuggestion)
async def get_system_rag(
    snap_id: int,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    """System-suggested RAG for a snap, with the signals behind it"""
    return await service.suggest_system_rag(snap_id)
