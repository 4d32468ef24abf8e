"""Response models shared by the v1 routers."""
from datetime import date as Date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from ...models.enums import RAGStatus, SprintStatus


class SnapResponse(BaseModel):
    id: int
    card_id: int
    created_by_id: int
    raw_input: str
    done: Optional[str]
    to_do: Optional[str]
    blockers: Optional[str]
    suggested_rag: Optional[RAGStatus]
    final_rag: Optional[RAGStatus]
    snap_date: Date
    slot_number: Optional[int]
    is_locked: bool
    created_at: Optional[datetime]
    updated_at: Optional[datetime]

    class Config:
        from_attributes = True


class LockResponse(BaseModel):
    id: int
    sprint_id: int
    lock_date: Date
    slot_number: Optional[int]
    is_locked: bool
    is_auto_locked: bool
    locked_by_id: Optional[int]
    daily_summary_done: Optional[str]
    daily_summary_to_do: Optional[str]
    daily_summary_blockers: Optional[str]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class SummaryResponse(BaseModel):
    id: int
    sprint_id: int
    summary_date: Date
    done: Optional[str]
    to_do: Optional[str]
    blockers: Optional[str]
    rag_overview: Optional[Dict[str, Any]]
    full_data: Dict[str, Any]
    created_at: Optional[datetime]

    class Config:
        from_attributes = True


class RAGHistoryResponse(BaseModel):
    id: int
    card_id: int
    date: Date
    rag_status: RAGStatus
    is_overridden: bool
    overridden_by_id: Optional[int]
    notes: Optional[str]

    class Config:
        from_attributes = True


class SprintResponse(BaseModel):
    id: int
    name: str
    goal: Optional[str]
    start_date: Date
    end_date: Date
    status: SprintStatus
    is_closed: bool
    daily_standup_count: int
    project_id: int

    class Config:
        from_attributes = True


class SlotGroupResponse(BaseModel):
    slot_number: int
    card_ids: List[int]
    snaps: List[SnapResponse]

    class Config:
        from_attributes = True
