from sqlalchemy import Column, String, Boolean
from .base import BaseModel


class User(BaseModel):
    """Snap author, card assignee or scrum master; only the latter may lock days and override RAG."""
    __tablename__ = "users"

    email = Column(String, unique=True, index=True, nullable=False)
    # Shown as the assignee name in daily summaries
    full_name = Column(String, nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_scrum_master = Column(Boolean, default=False, nullable=False)
