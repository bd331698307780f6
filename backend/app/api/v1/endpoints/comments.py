from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Annotated, Optional
from uuid import UUID

from app.core.config import settings
from app.core.database import get_db
from app.core.permissions import Actor
from app.api.deps import get_current_actor
from app.schemas.comment import (
    CommentCreate, CommentUpdate, CommentResponse,
    AuthoredCommentListResponse, CommentStats,
)
from app.services.comment_service import comment_service

router = APIRouter()


@router.post(
    "/submissions/{submission_id}/comments",
    response_model=CommentResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_comment(
    submission_id: UUID,
    request: CommentCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await comment_service.create_comment(db, actor, submission_id, request.content)


@router.get("/submissions/{submission_id}/comments", response_model=list[CommentResponse])
async def list_comments(
    submission_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await comment_service.list_comments(db, actor, submission_id)


@router.get("/comments/mine", response_model=AuthoredCommentListResponse)
async def list_my_comments(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=settings.MAX_PAGE_SIZE)] = settings.DEFAULT_PAGE_SIZE,
):
    return await comment_service.list_comments_by_author(db, actor, page, limit)


@router.get("/comments/stats", response_model=CommentStats)
async def comment_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    task_id: Optional[UUID] = None,
    submission_id: Optional[UUID] = None,
):
    return await comment_service.comment_stats(db, actor, task_id, submission_id)


@router.patch("/comments/{comment_id}", response_model=CommentResponse)
async def update_comment(
    comment_id: UUID,
    request: CommentUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await comment_service.update_comment(db, actor, comment_id, request.content)


@router.delete("/comments/{comment_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_comment(
    comment_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    await comment_service.delete_comment(db, actor, comment_id)
