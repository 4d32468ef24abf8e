from datetime import date, date as Date, timedelta
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.clock import Clock
from ..core.exceptions import SprintNotFoundError
from ..models.project import Sprint
from ..models.snap import Snap
from ..repositories import LockRepository, SnapRepository, SprintRepository


class DayStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class SprintDay(BaseModel):
    date: Date
    day_number: int
    is_accessible: bool


class DayMetadata(BaseModel):
    day_number: int
    date: Date
    day_status: DayStatus
    is_locked: bool
    total_snaps: int
    total_cards: int
    standup_slot_count: int


class SlotGroup:
    def __init__(self, slot_number: int, snaps: List[Snap]) -> None:
        self.slot_number = slot_number
        self.snaps = snaps

    @property
    def card_ids(self) -> List[int]:
        return list(dict.fromkeys(s.card_id for s in self.snaps))


class StandupBookService:
    """Read-side views over a sprint's days, slots and snaps"""

    def __init__(self, db: AsyncSession, clock: Clock) -> None:
        self.db = db
        self.clock = clock
        self.sprints = SprintRepository(db)
        self.snaps = SnapRepository(db)
        self.locks = LockRepository(db)

    async def get_active_sprint(self, project_id: int) -> Optional[Sprint]:
        return await self.sprints.find_active_by_project(project_id)

    async def get_sprint_days(self, sprint_id: int) -> List[SprintDay]:
        sprint = await self._get_sprint(sprint_id)
        today = self.clock.today()

        days: List[SprintDay] = []
        current = sprint.start_date
        day_number = 1
        while current <= sprint.end_date:
            days.append(SprintDay(date=current, day_number=day_number, is_accessible=current <= today))
            current += timedelta(days=1)
            day_number += 1
        return days

    async def get_day_metadata(self, sprint_id: int, day: date) -> DayMetadata:
        sprint = await self._get_sprint(sprint_id)

        day_lock = await self.locks.get(sprint_id, day)
        is_locked = bool(day_lock and day_lock.is_locked)
        snaps = await self.snaps.list_by_sprint_and_date(sprint_id, day)

        if is_locked:
            status = DayStatus.COMPLETED
        elif day == self.clock.today():
            status = DayStatus.IN_PROGRESS
        else:
            status = DayStatus.NOT_STARTED

        return DayMetadata(
            day_number=(day - sprint.start_date).days + 1,
            date=day,
            day_status=status,
            is_locked=is_locked,
            total_snaps=len(snaps),
            total_cards=len({s.card_id for s in snaps}),
            standup_slot_count=sprint.daily_standup_count or 1,
        )

    async def get_snaps_grouped_by_slots(self, sprint_id: int, day: date) -> List[SlotGroup]:
        """Every configured slot is returned, empty or not; unslotted snaps belong to slot 1."""
        sprint = await self._get_sprint(sprint_id)
        total_slots = sprint.daily_standup_count or 1

        groups = {n: SlotGroup(n, []) for n in range(1, total_slots + 1)}
        for snap in await self.snaps.list_by_sprint_and_date(sprint_id, day):
            slot = snap.slot_number or 1
            if slot in groups:
                groups[slot].snaps.append(snap)

        return [groups[n] for n in range(1, total_slots + 1)]

    async def _get_sprint(self, sprint_id: int) -> Sprint:
        sprint = await self.sprints.get(sprint_id)
        if sprint is None:
            raise SprintNotFoundError(sprint_id)
        return sprint
