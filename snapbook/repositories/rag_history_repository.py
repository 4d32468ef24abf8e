from datetime import date
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.card import CardRAGHistory


class RAGHistoryRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, card_id: int, day: date) -> Optional[CardRAGHistory]:
        stmt = select(CardRAGHistory).where(
            CardRAGHistory.card_id == card_id,
            CardRAGHistory.date == day,
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def add(self, entry: CardRAGHistory) -> CardRAGHistory:
        self.db.add(entry)
        await self.db.flush()
        return entry

    async def list_by_card(self, card_id: int) -> List[CardRAGHistory]:
        stmt = (
            select(CardRAGHistory)
            .where(CardRAGHistory.card_id == card_id)
            .order_by(CardRAGHistory.date.desc())
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())
