from datetime import date
from typing import List, Optional, Tuple

from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.exceptions import (
    AlreadyLockedError,
    LockNotFoundError,
    SprintNotFoundError,
    ValidationFailedError,
)
from ..models.lock import DailyLock
from ..models.project import Sprint
from ..models.snap import Snap
from ..repositories import LockRepository, SnapRepository, SprintRepository
from ..utils.logging import get_logger

logger = get_logger(__name__)

NO_UPDATES_RECORDED = "No updates recorded"
NO_UPDATES = "No updates"
NO_BLOCKERS = "None"


class LockSummaryText(BaseModel):
    done: str
    to_do: str
    blockers: str


def build_lock_summary(snaps: List[Snap]) -> LockSummaryText:
    """Bullet-list the snaps' fields; sentinel text when there is nothing to show."""
    if not snaps:
        return LockSummaryText(done=NO_UPDATES_RECORDED, to_do=NO_UPDATES_RECORDED, blockers=NO_BLOCKERS)

    done = [f"- {s.done}" for s in snaps if s.done]
    to_do = [f"- {s.to_do}" for s in snaps if s.to_do]
    blockers = [f"- {s.blockers}" for s in snaps if s.blockers]

    return LockSummaryText(
        done="\n".join(done) if done else NO_UPDATES,
        to_do="\n".join(to_do) if to_do else NO_UPDATES,
        blockers="\n".join(blockers) if blockers else NO_BLOCKERS,
    )


class LockManager:
    """Exactly-once freezing of a sprint day or of one standup slot.

    Acquisition inserts the lock row first and relies on the
    (sprint, date, slot) unique constraint, so two concurrent lockers cannot
    both succeed. The caller owns the transaction and commits it.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db
        self.locks = LockRepository(db)
        self.sprints = SprintRepository(db)
        self.snaps = SnapRepository(db)

    async def lock_day(self, sprint_id: int, day: date, actor_id: Optional[int]) -> DailyLock:
        sprint = await self._get_lockable_sprint(sprint_id, day)

        if await self.locks.get(sprint_id, day) is not None:
            raise AlreadyLockedError("This day is already locked", sprint_id=sprint_id, date=day.isoformat())

        lock, frozen = await self._freeze(sprint, day, None, actor_id, auto=False)
        logger.info("Locked sprint %d day %s (%d snaps)", sprint_id, day, frozen)
        return lock

    async def lock_slot(self, sprint_id: int, day: date, slot_number: int, actor_id: Optional[int]) -> DailyLock:
        sprint = await self._get_lockable_sprint(sprint_id, day)
        self.validate_slot(sprint, slot_number)

        if await self.locks.get(sprint_id, day) is not None:
            raise AlreadyLockedError("Entire day is already locked", sprint_id=sprint_id, date=day.isoformat())
        if await self.locks.get(sprint_id, day, slot_number) is not None:
            raise AlreadyLockedError(
                f"Slot {slot_number} is already locked",
                sprint_id=sprint_id,
                date=day.isoformat(),
                slot_number=slot_number,
            )

        lock, frozen = await self._freeze(sprint, day, slot_number, actor_id, auto=False)
        logger.info("Locked sprint %d day %s slot %d (%d snaps)", sprint_id, day, slot_number, frozen)
        return lock

    async def auto_lock_day(self, sprint_id: int, day: date) -> Optional[DailyLock]:
        """Scheduler variant of ``lock_day``: anything that would be an error is a no-op."""
        sprint = await self.sprints.get_for_update(sprint_id)
        if sprint is None or sprint.is_closed:
            logger.info("Auto-lock skipped for sprint %s on %s: sprint missing or closed", sprint_id, day)
            return None
        if not sprint.contains(day):
            logger.info("Auto-lock skipped for sprint %d on %s: outside sprint window", sprint_id, day)
            return None
        if await self.locks.get(sprint_id, day) is not None:
            logger.info("Auto-lock skipped for sprint %d on %s: already locked", sprint_id, day)
            return None

        try:
            lock, frozen = await self._freeze(sprint, day, None, None, auto=True)
        except AlreadyLockedError:
            logger.info("Auto-lock lost race for sprint %d on %s", sprint_id, day)
            return None

        logger.info("Auto-locked sprint %d day %s (%d snaps)", sprint_id, day, frozen)
        return lock

    async def is_locked(self, sprint_id: int, day: date, slot_number: Optional[int] = None) -> bool:
        """A day lock covers every slot; a slot lock only covers itself."""
        day_lock = await self.locks.get(sprint_id, day)
        if day_lock is not None and day_lock.is_locked:
            return True

        if slot_number is not None:
            slot_lock = await self.locks.get(sprint_id, day, slot_number)
            if slot_lock is not None and slot_lock.is_locked:
                return True

        return False

    async def get_daily_lock(self, sprint_id: int, day: date) -> Optional[DailyLock]:
        return await self.locks.get(sprint_id, day)

    async def get_all_locks_for_day(self, sprint_id: int, day: date) -> List[DailyLock]:
        return await self.locks.list_for_day(sprint_id, day)

    async def unlock(self, sprint_id: int, day: date, slot_number: Optional[int] = None) -> None:
        """Administrative escape hatch; not part of the normal lock lifecycle."""
        lock = await self.locks.get(sprint_id, day, slot_number)
        if lock is None:
            raise LockNotFoundError("No lock found for this day", sprint_id=sprint_id, date=day.isoformat())

        await self.locks.delete(lock)
        logger.warning(
            "Administrative unlock of sprint %d on %s (slot %s, originally locked by %s)",
            sprint_id, day, slot_number, lock.locked_by_id,
        )

    @staticmethod
    def validate_slot(sprint: Sprint, slot_number: int) -> None:
        slot_count = sprint.daily_standup_count or 1
        if slot_number < 1 or slot_number > slot_count:
            raise ValidationFailedError(
                f"Slot number must be between 1 and {slot_count}",
                sprint_id=sprint.id,
                slot_number=slot_number,
            )

    async def _get_lockable_sprint(self, sprint_id: int, day: date) -> Sprint:
        sprint = await self.sprints.get_for_update(sprint_id)
        if sprint is None:
            raise SprintNotFoundError(sprint_id)
        if sprint.is_closed:
            raise ValidationFailedError("Cannot lock snaps for closed sprints", sprint_id=sprint_id)
        if not sprint.contains(day):
            raise ValidationFailedError("Date must be within sprint date range", sprint_id=sprint_id, date=day.isoformat())
        return sprint

    async def _freeze(
        self,
        sprint: Sprint,
        day: date,
        slot_number: Optional[int],
        actor_id: Optional[int],
        auto: bool,
    ) -> Tuple[DailyLock, int]:
        """Insert the lock row, then flag the covered snaps; returns the lock and snap count."""
        sprint_id = sprint.id
        snaps = await self.snaps.list_by_sprint_and_date(sprint_id, day, slot_number)
        summary = build_lock_summary(snaps)

        lock = DailyLock(
            sprint_id=sprint_id,
            lock_date=day,
            slot_number=slot_number,
            is_locked=True,
            is_auto_locked=auto,
            locked_by_id=actor_id,
            daily_summary_done=summary.done,
            daily_summary_to_do=summary.to_do,
            daily_summary_blockers=summary.blockers,
        )
        try:
            await self.locks.add(lock)
        except IntegrityError:
            await self.db.rollback()
            raise AlreadyLockedError(
                "This day is already locked" if slot_number is None else f"Slot {slot_number} is already locked",
                sprint_id=sprint_id,
                date=day.isoformat(),
            )

        for snap in snaps:
            snap.is_locked = True
        await self.db.flush()

        return lock, len(snaps)
