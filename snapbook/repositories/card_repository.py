from typing import List, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..models.card import Card
from ..models.enums import CardStatus, RAGStatus


class CardRepository:
    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def get(self, card_id: int) -> Optional[Card]:
        stmt = (
            select(Card)
            .options(selectinload(Card.sprint), selectinload(Card.assignee))
            .where(Card.id == card_id)
        )
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_for_update(self, card_id: int) -> Optional[Card]:
        """Row-lock the card for a read-modify-write of its RAG."""
        stmt = select(Card).where(Card.id == card_id).with_for_update()
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_by_sprint(self, sprint_id: int) -> List[Card]:
        stmt = (
            select(Card)
            .options(selectinload(Card.assignee))
            .where(Card.sprint_id == sprint_id)
            .order_by(Card.id)
        )
        result = await self.db.execute(stmt)
        return list(result.scalars().all())

    async def set_status(self, card_id: int, status: CardStatus) -> None:
        await self.db.execute(update(Card).where(Card.id == card_id).values(status=status))

    async def set_rag(self, card_id: int, rag: RAGStatus) -> None:
        await self.db.execute(update(Card).where(Card.id == card_id).values(rag_status=rag))
