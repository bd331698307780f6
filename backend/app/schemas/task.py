from pydantic import BaseModel, Field, field_validator
from typing import Optional, Literal
from uuid import UUID
from datetime import datetime

from app.core.clock import to_naive_utc
from app.core.config import settings
from app.schemas.attachment import Attachment, AttachmentIn, StoredFile
from app.schemas.common import Pagination


def _strip_required(value: str) -> str:
    value = value.strip()
    if not value:
        raise ValueError("must not be empty")
    return value


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: str = Field(min_length=1)
    assigned_groups: list[UUID] = Field(min_length=1)
    deadline: datetime
    allow_late_submission: bool = False
    max_points: int = Field(ge=0)
    attachments: list[AttachmentIn] = []
    files: list[StoredFile] = []

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, value: str) -> str:
        return _strip_required(value)

    @field_validator("deadline")
    @classmethod
    def deadline_utc(cls, value: datetime) -> datetime:
        return to_naive_utc(value)


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = Field(default=None, min_length=1)
    assigned_groups: Optional[list[UUID]] = Field(default=None, min_length=1)
    deadline: Optional[datetime] = None
    allow_late_submission: Optional[bool] = None
    max_points: Optional[int] = Field(default=None, ge=0)
    # Replaces the attachment list wholesale when either field is sent
    attachments: Optional[list[AttachmentIn]] = None
    files: Optional[list[StoredFile]] = None

    @field_validator("title", "description")
    @classmethod
    def not_blank(cls, value: Optional[str]) -> Optional[str]:
        return _strip_required(value) if value is not None else value

    @field_validator("deadline")
    @classmethod
    def deadline_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return to_naive_utc(value) if value is not None else value


class TaskFilter(BaseModel):
    group_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    status: Optional[Literal["active", "expired"]] = None
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE)
    sort_by: Literal["created_at", "deadline", "title"] = "created_at"
    order: Literal["asc", "desc"] = "desc"


class TeacherSummary(BaseModel):
    id: UUID
    first_name: Optional[str]
    last_name: Optional[str]
    email: Optional[str]

    class Config:
        from_attributes = True


class TaskResponse(BaseModel):
    id: UUID
    title: str
    description: str
    teacher_id: UUID
    teacher: Optional[TeacherSummary] = None
    assigned_groups: list[UUID]
    deadline: datetime
    allow_late_submission: bool
    max_points: int
    attachments: list[Attachment]
    created_at: datetime
    updated_at: datetime
    submission_count: int = 0
    total_students: int = 0

    class Config:
        from_attributes = True


class TaskListResponse(BaseModel):
    tasks: list[TaskResponse]
    pagination: Pagination


class StudentTaskResponse(TaskResponse):
    has_submitted: bool
    submission_id: Optional[UUID] = None
    submission_status: Optional[str] = None
    is_expired: bool
    can_submit: bool


class StudentTaskListResponse(BaseModel):
    tasks: list[StudentTaskResponse]
    pagination: Pagination


class BulkDeleteResponse(BaseModel):
    deleted: int
