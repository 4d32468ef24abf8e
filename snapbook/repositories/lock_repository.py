from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.lock import DAY_SLOT_KEY, DailyLock


class LockRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, sprint_id: int, day: date, slot_number: Optional[int] = None) -> Optional[DailyLock]:
        """Day-level lock when ``slot_number`` is None, else that slot's lock."""
        slot_key = DAY_SLOT_KEY if slot_number is None else slot_number
        stmt = select(DailyLock).where(
            DailyLock.sprint_id == sprint_id,
            DailyLock.lock_date == day,
            DailyLock.slot_key == slot_key,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_day(self, sprint_id: int, day: date) -> List[DailyLock]:
        stmt = (
            select(DailyLock)
            .where(DailyLock.sprint_id == sprint_id, DailyLock.lock_date == day)
            .order_by(DailyLock.slot_key)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def add(self, lock: DailyLock) -> DailyLock:
        """Insert and flush so the unique constraint is checked immediately."""
        lock.slot_key = DAY_SLOT_KEY if lock.slot_number is None else lock.slot_number
        self.db.add(lock)
        await self.db.flush()
        return lock

    async def delete(self, lock: DailyLock) -> None:
        await self.db.delete(lock)
        await self.db.flush()
