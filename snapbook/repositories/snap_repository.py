from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.card import Card
from ..models.snap import Snap


class SnapRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def add(self, snap: Snap) -> Snap:
        self.db.add(snap)
        await self.db.flush()
        return snap

    async def delete(self, snap: Snap) -> None:
        await self.db.delete(snap)
        await self.db.flush()

    async def get(self, snap_id: int) -> Optional[Snap]:
        """Load a snap together with its card, sprint, assignee and author."""
        stmt = (
            select(Snap)
            .options(
                selectinload(Snap.card).selectinload(Card.sprint),
                selectinload(Snap.card).selectinload(Card.assignee),
                selectinload(Snap.created_by),
            )
            .where(Snap.id == snap_id)
            .execution_options(populate_existing=True)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_card(self, card_id: int, limit: Optional[int] = None) -> List[Snap]:
        """Newest first."""
        stmt = (
            select(Snap)
            .options(selectinload(Snap.created_by))
            .where(Snap.card_id == card_id)
            .order_by(Snap.snap_date.desc(), Snap.created_at.desc(), Snap.id.desc())
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_by_card_and_date_range(
        self,
        card_id: int,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[Snap]:
        """Newest first, bounds inclusive."""
        stmt = select(Snap).where(Snap.card_id == card_id)
        if start is not None:
            stmt = stmt.where(Snap.snap_date >= start)
        if end is not None:
            stmt = stmt.where(Snap.snap_date <= end)
        stmt = stmt.order_by(Snap.snap_date.desc(), Snap.created_at.desc(), Snap.id.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def first_snap_date(self, card_id: int) -> Optional[date]:
        stmt = select(Snap.snap_date).where(Snap.card_id == card_id).order_by(Snap.snap_date).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def latest_for_card_on(self, card_id: int, day: date) -> Optional[Snap]:
        stmt = (
            select(Snap)
            .where(Snap.card_id == card_id, Snap.snap_date == day)
            .order_by(Snap.created_at.desc(), Snap.id.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_sprint_and_date(
        self,
        sprint_id: int,
        day: date,
        slot_number: Optional[int] = None,
    ) -> List[Snap]:
        """Every snap of the sprint's cards on ``day``, oldest first; optionally one slot only."""
        stmt = (
            select(Snap)
            .join(Card, Snap.card_id == Card.id)
            .options(
                selectinload(Snap.card).selectinload(Card.assignee),
                selectinload(Snap.created_by),
            )
            .where(Card.sprint_id == sprint_id, Snap.snap_date == day)
        )
        if slot_number is not None:
            stmt = stmt.where(Snap.slot_number == slot_number)
        stmt = stmt.order_by(Snap.created_at, Snap.id)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
