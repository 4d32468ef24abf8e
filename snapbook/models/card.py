from sqlalchemy import (
    Column,
    String,
    Integer,
    Text,
    Date,
    DateTime,
    ForeignKey,
    Boolean,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from .base import BaseModel
from .enums import CardStatus, RAGStatus, enum_column_type


class Card(BaseModel):
    __tablename__ = "cards"

    title = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    external_id = Column(String, nullable=True)  # Jira ticket key, etc.

    # Estimated effort in hours; snaps are rejected until it is positive
    estimated_time = Column(Integer, nullable=True)

    status = Column(enum_column_type(CardStatus, "card_status"), default=CardStatus.NOT_STARTED, nullable=False)
    rag_status = Column(enum_column_type(RAGStatus, "card_rag"), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)

    # Foreign keys
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)
    sprint_id = Column(Integer, ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False, index=True)
    assignee_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    sprint = relationship("Sprint", back_populates="cards")
    assignee = relationship("User")
    snaps = relationship("Snap", back_populates="card", cascade="all, delete-orphan", passive_deletes=True)


class CardRAGHistory(BaseModel):
    """RAG in effect for a card on one calendar day."""
    __tablename__ = "card_rag_history"
    __table_args__ = (
        UniqueConstraint("card_id", "date", name="uq_card_rag_history_card_date"),
    )

    date = Column(Date, nullable=False)
    rag_status = Column(enum_column_type(RAGStatus, "history_rag"), nullable=False)
    is_overridden = Column(Boolean, default=False, nullable=False)
    notes = Column(Text, nullable=True)

    # Foreign keys
    card_id = Column(Integer, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    overridden_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    card = relationship("Card")
    overridden_by = relationship("User")
