"""Task/Assignment models for teacher-assigned work"""
import uuid
from sqlalchemy import (
    Column, String, Text, Boolean, Integer, DateTime, ForeignKey, JSON, Table,
    UniqueConstraint, Uuid, Enum as SQLEnum,
)
from sqlalchemy.orm import relationship

from app.core import clock
from app.core.database import Base
from app.models.enums import SubmissionStatus


task_groups = Table(
    "task_groups",
    Base.metadata,
    Column("task_id", Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), primary_key=True),
    Column("group_id", Uuid, ForeignKey("groups.id", ondelete="CASCADE"), primary_key=True),
)


class Task(Base):
    __tablename__ = "tasks"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    teacher_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    title = Column(String(255), nullable=False)
    description = Column(Text, nullable=False)

    deadline = Column(DateTime, nullable=False, index=True)
    allow_late_submission = Column(Boolean, default=False, nullable=False)
    max_points = Column(Integer, default=0, nullable=False)

    attachments = Column(JSON, default=list, nullable=False)

    created_at = Column(DateTime, default=clock.utcnow, nullable=False)
    updated_at = Column(DateTime, default=clock.utcnow, onupdate=clock.utcnow, nullable=False)

    # Relationships
    teacher = relationship("User", lazy="selectin")
    groups = relationship("Group", secondary=task_groups, lazy="selectin", order_by="Group.name")

    @property
    def assigned_groups(self) -> list[uuid.UUID]:
        return [group.id for group in self.groups]

    def is_expired(self, now) -> bool:
        return self.deadline < now

    def accepts_submissions(self, now) -> bool:
        return self.allow_late_submission or not self.is_expired(now)


class TaskSubmission(Base):
    __tablename__ = "task_submissions"
    __table_args__ = (
        UniqueConstraint("task_id", "student_id", name="uq_submission_task_student"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    task_id = Column(Uuid, ForeignKey("tasks.id", ondelete="CASCADE"), nullable=False, index=True)
    student_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)

    attachments = Column(JSON, default=list, nullable=False)

    submitted_at = Column(DateTime, default=clock.utcnow, nullable=False)
    is_late = Column(Boolean, default=False, nullable=False)
    status = Column(
        SQLEnum(SubmissionStatus, values_callable=lambda x: [e.value for e in x]),
        default=SubmissionStatus.SUBMITTED,
        nullable=False,
        index=True,
    )
    points = Column(Integer, nullable=True)
    feedback = Column(Text, nullable=True)

    updated_at = Column(DateTime, default=clock.utcnow, onupdate=clock.utcnow, nullable=False)
