"""
RAG API Endpoints

Sprint and project rollups plus per-card RAG history
"""
from fastapi import APIRouter, Depends, status
from typing import List, Optional
from datetime import date as Date

from pydantic import BaseModel

from ...core.auth import get_current_user, get_current_scrum_master
from ...models.user import User
from ...services.rag_engine import ProjectRAGRollup, SprintRAGRollup
from ...services.snap_service import SnapService
from .deps import get_snap_service
from .schemas import RAGHistoryResponse

router = APIRouter()


class RAGHistoryRequest(BaseModel):
    date: Optional[Date] = None
    notes: Optional[str] = None


@router.get("/sprint/{sprint_id}", response_model=SprintRAGRollup)
async def get_sprint_rag(
    sprint_id: int,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_sprint_rag(sprint_id)


@router.get("/project/{project_id}", response_model=ProjectRAGRollup)
async def get_project_rag(
    project_id: int,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_project_rag(project_id)


@router.get("/card/{card_id}/history", response_model=List[RAGHistoryResponse])
async def get_card_rag_history(
    card_id: int,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_user)
):
    return await service.get_card_rag_history(card_id)


@router.post(
    "/card/{card_id}/history",
    response_model=Optional[RAGHistoryResponse],
    status_code=status.HTTP_201_CREATED,
)
async def record_card_rag_history(
    card_id: int,
    request: RAGHistoryRequest,
    service: SnapService = Depends(get_snap_service),
    current_user: User = Depends(get_current_scrum_master)
):
    """Record the card's current RAG for a day (defaults to today); null if the card has no RAG yet"""
    return await service.record_card_rag_history(card_id, request.date, current_user.id, request.notes)
