from sqlalchemy import Column, Integer, Text, Date, ForeignKey, Boolean, UniqueConstraint
from sqlalchemy.orm import relationship
from .base import BaseModel

# slot_key value of a whole-day lock
DAY_SLOT_KEY = 0


class DailyLock(BaseModel):
    """Freeze of a sprint day (slot_number is None) or of one standup slot."""
    __tablename__ = "daily_locks"
    __table_args__ = (
        # slot_key is non-null so the whole-day row is unique too
        UniqueConstraint("sprint_id", "lock_date", "slot_key", name="uq_daily_lock_sprint_date_slot"),
    )

    lock_date = Column(Date, nullable=False)
    slot_number = Column(Integer, nullable=True)
    slot_key = Column(Integer, nullable=False, default=DAY_SLOT_KEY)
    is_locked = Column(Boolean, default=True, nullable=False)
    is_auto_locked = Column(Boolean, default=False, nullable=False)

    # Bullet summaries synthesized from the frozen snaps
    daily_summary_done = Column(Text, nullable=True)
    daily_summary_to_do = Column(Text, nullable=True)
    daily_summary_blockers = Column(Text, nullable=True)

    # Foreign keys
    sprint_id = Column(Integer, ForeignKey("sprints.id", ondelete="CASCADE"), nullable=False, index=True)
    locked_by_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    # Relationships
    sprint = relationship("Sprint")
    locked_by = relationship("User")

    @property
    def is_day_lock(self) -> bool:
        return self.slot_number is None
