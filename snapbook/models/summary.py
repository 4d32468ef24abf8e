from sqlalchemy import Column, Integer, Text, Date, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel


class DailySummary(BaseModel):
    __tablename__ = "daily_summaries"
    __table_args__ = (
        UniqueConstraint("sprint_id", "summary_date", name="uq_daily_summary_sprint_date"),
    )

    summary_date = Column(Date, nullable=False)

    # Consolidated "[card] text" lines
    done = Column(Text, nullable=True)
    to_do = Column(Text, nullable=True)
    blockers = Column(Text, nullable=True)

    # {"cardLevel": {...}, "assigneeLevel": {...}, "sprintLevel": "red"}
    rag_overview = Column(JSON, nullable=True)

    # Per-assignee breakdown for viewing/export
    full_data = Column(JSON, nullable=False, default={})

    # Foreign keys
    sprint_id = Column(Integer, ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    sprint = relationship("Sprint")
