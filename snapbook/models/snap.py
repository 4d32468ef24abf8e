from sqlalchemy import Column, Integer, Text, Date, ForeignKey, Boolean
from sqlalchemy.orm import relationship
from .base import BaseModel
from .enums import RAGStatus, enum_column_type


class Snap(BaseModel):
    """One standup update for one card on one calendar day"""
    __tablename__ = "snaps"

    # Raw text as typed by the author
    raw_input = Column(Text, nullable=False)

    # Structured output, classifier-derived or supplied manually
    done = Column(Text, nullable=True)
    to_do = Column(Text, nullable=True)
    blockers = Column(Text, nullable=True)

    # Classifier suggestion and the author/SM decision (defaults to the suggestion)
    suggested_rag = Column(enum_column_type(RAGStatus, "snap_suggested_rag"), nullable=True)
    final_rag = Column(enum_column_type(RAGStatus, "snap_final_rag"), nullable=True)

    snap_date = Column(Date, nullable=False, index=True)
    slot_number = Column(Integer, nullable=True)  # 1-based standup slot within the day
    is_locked = Column(Boolean, default=False, nullable=False)

    # Foreign keys
    card_id = Column(Integer, ForeignKey("cards.id", ondelete="CASCADE"), nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("users.id"), nullable=False)

    # Relationships
    card = relationship("Card", back_populates="snaps")
    created_by = relationship("User")
