from sqlalchemy import Column, String, Integer, Date, ForeignKey, Text, Boolean
from sqlalchemy.orm import relationship
from .base import BaseModel
from .enums import SprintStatus, enum_column_type


class Project(BaseModel):
    __tablename__ = "projects"

    name = Column(String, nullable=False)
    description = Column(Text, nullable=True)
    is_active = Column(Boolean, default=True)

    # Relationships
    sprints = relationship("Sprint", back_populates="project")


class Sprint(BaseModel):
    __tablename__ = "sprints"

    name = Column(String, nullable=False)
    goal = Column(Text, nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    status = Column(enum_column_type(SprintStatus, "sprint_status"), default=SprintStatus.PLANNED, nullable=False)
    is_closed = Column(Boolean, default=False, nullable=False)

    # Number of standups held per day; snaps carry a 1-based slot within it
    daily_standup_count = Column(Integer, default=1, nullable=False)

    # Foreign keys
    project_id = Column(Integer, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True)

    # Relationships
    project = relationship("Project", back_populates="sprints")
    cards = relationship("Card", back_populates="sprint")

    def contains(self, day) -> bool:
        return self.start_date <= day <= self.end_date
