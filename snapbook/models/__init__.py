"""SQLAlchemy models; importing this package registers every table on Base.metadata."""

from .base import Base, BaseModel
from .enums import CardStatus, RAGStatus, SprintStatus
from .user import User
from .project import Project, Sprint
from .card import Card, CardRAGHistory
from .snap import Snap
from .lock import DAY_SLOT_KEY, DailyLock
from .summary import DailySummary

__all__ = [
    "Base",
    "BaseModel",
    "CardStatus",
    "RAGStatus",
    "SprintStatus",
    "User",
    "Project",
    "Sprint",
    "Card",
    "CardRAGHistory",
    "Snap",
    "DAY_SLOT_KEY",
    "DailyLock",
    "DailySummary",
]
