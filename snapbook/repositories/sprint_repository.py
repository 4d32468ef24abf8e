from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.enums import SprintStatus
from ..models.project import Sprint


class SprintRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, sprint_id: int) -> Optional[Sprint]:
        result = await self.db.execute(select(Sprint).where(Sprint.id == sprint_id))
        return result.scalar_one_or_none()

    async def get_for_update(self, sprint_id: int) -> Optional[Sprint]:
        """Row-lock the sprint so snap creation and day/slot locking run one at a time."""
        stmt = select(Sprint).where(Sprint.id == sprint_id).with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_project(self, project_id: int) -> List[Sprint]:
        stmt = select(Sprint).where(Sprint.project_id == project_id).order_by(Sprint.start_date)
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def find_active_by_project(self, project_id: int) -> Optional[Sprint]:
        stmt = (
            select(Sprint)
            .where(Sprint.project_id == project_id, Sprint.status == SprintStatus.ACTIVE)
            .order_by(Sprint.start_date.desc())
            .limit(1)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self) -> List[Sprint]:
        stmt = select(Sprint).where(
            Sprint.status == SprintStatus.ACTIVE,
            Sprint.is_closed.is_(False),
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
