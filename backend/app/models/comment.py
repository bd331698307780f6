import uuid
from sqlalchemy import Column, Text, DateTime, ForeignKey, Uuid, Enum as SQLEnum

from app.core import clock
from app.core.database import Base
from app.models.enums import AuthorType


class SubmissionComment(Base):
    __tablename__ = "submission_comments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    submission_id = Column(Uuid, ForeignKey("task_submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    author_id = Column(Uuid, ForeignKey("users.id"), nullable=False, index=True)
    # Snapshot of the author's side at creation time
    author_type = Column(SQLEnum(AuthorType, values_callable=lambda x: [e.value for e in x]), nullable=False)
    content = Column(Text, nullable=False)

    created_at = Column(DateTime, default=clock.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=clock.utcnow, onupdate=clock.utcnow, nullable=False)
