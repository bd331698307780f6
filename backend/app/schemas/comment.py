from pydantic import BaseModel, Field
from typing import Optional
from uuid import UUID
from datetime import datetime

from app.core.config import settings
from app.models.enums import AuthorType
from app.schemas.common import Pagination


class CommentCreate(BaseModel):
    content: str = Field(min_length=1, max_length=settings.COMMENT_MAX_LENGTH)


class CommentUpdate(BaseModel):
    content: str = Field(min_length=1, max_length=settings.COMMENT_MAX_LENGTH)


class CommentResponse(BaseModel):
    id: UUID
    submission_id: UUID
    author_id: UUID
    author_type: AuthorType
    content: str
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AuthoredCommentResponse(CommentResponse):
    task_id: Optional[UUID] = None
    task_title: Optional[str] = None


class AuthoredCommentListResponse(BaseModel):
    comments: list[AuthoredCommentResponse]
    pagination: Pagination


class CommentStats(BaseModel):
    total_comments: int = 0
    teacher_comments: int = 0
    student_comments: int = 0
    average_comments_per_submission: float = 0.0
