from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.project import Sprint
from ..models.summary import DailySummary


class SummaryRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, sprint_id: int, day: date) -> Optional[DailySummary]:
        stmt = select(DailySummary).where(
            DailySummary.sprint_id == sprint_id,
            DailySummary.summary_date == day,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, summary: DailySummary) -> DailySummary:
        self.db.add(summary)
        await self.db.flush()
        return summary

    async def list_by_project(
        self,
        project_id: int,
        sprint_id: Optional[int] = None,
        start: Optional[date] = None,
        end: Optional[date] = None,
    ) -> List[DailySummary]:
        stmt = (
            select(DailySummary)
            .join(Sprint, DailySummary.sprint_id == Sprint.id)
            .where(Sprint.project_id == project_id)
        )
        if sprint_id is not None:
            stmt = stmt.where(DailySummary.sprint_id == sprint_id)
        if start is not None:
            stmt = stmt.where(DailySummary.summary_date >= start)
        if end is not None:
            stmt = stmt.where(DailySummary.summary_date <= end)
        stmt = stmt.order_by(DailySummary.summary_date.desc())
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
