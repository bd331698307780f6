from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.models.enums import SubmissionStatus
from app.schemas.attachment import Attachment, AttachmentIn, StoredFile


class SubmissionCreate(BaseModel):
    task_id: UUID
    attachments: list[AttachmentIn] = []
    files: list[StoredFile] = []


class SubmissionUpdate(BaseModel):
    # Student side
    attachments: Optional[list[AttachmentIn]] = None
    files: Optional[list[StoredFile]] = None
    # Grading side
    points: Optional[int] = Field(default=None, ge=0)
    feedback: Optional[str] = None
    status: Optional[SubmissionStatus] = None


class GradeRequest(BaseModel):
    points: int = Field(ge=0)
    feedback: Optional[str] = None


class SubmissionFilter(BaseModel):
    task_id: Optional[UUID] = None
    student_id: Optional[UUID] = None
    status: Optional[SubmissionStatus] = None


class SubmissionResponse(BaseModel):
    id: UUID
    task_id: UUID
    student_id: UUID
    attachments: list[Attachment]
    submitted_at: datetime
    is_late: bool
    status: SubmissionStatus
    points: Optional[int]
    feedback: Optional[str]
    updated_at: datetime

    class Config:
        from_attributes = True


class SubmissionStats(BaseModel):
    total_submissions: int = 0
    submitted_count: int = 0
    graded_count: int = 0
    returned_count: int = 0
    late_submissions: int = 0
    average_points: Optional[float] = None
    max_points: Optional[int] = None
    min_points: Optional[int] = None
