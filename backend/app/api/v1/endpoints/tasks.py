from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Annotated, Optional, Literal
from uuid import UUID

from app.core.config import settings
from app.core.database import get_db
from app.core.permissions import TEACHING_ROLES, Actor
from app.api.deps import get_current_actor, get_actor_group_ids
from app.schemas.task import (
    TaskCreate, TaskUpdate, TaskFilter, TaskResponse, TaskListResponse,
    StudentTaskListResponse, BulkDeleteResponse,
)
from app.services.task_service import task_service

router = APIRouter()


@router.post("", response_model=TaskResponse, status_code=status.HTTP_201_CREATED)
async def create_task(
    request: TaskCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await task_service.create_task(db, actor, request)


@router.get("", response_model=TaskListResponse)
async def list_tasks(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    group_id: Optional[UUID] = None,
    teacher_id: Optional[UUID] = None,
    task_status: Annotated[Optional[Literal["active", "expired"]], Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=settings.MAX_PAGE_SIZE)] = settings.DEFAULT_PAGE_SIZE,
    sort_by: Literal["created_at", "deadline", "title"] = "created_at",
    order: Literal["asc", "desc"] = "desc",
):
    """List tasks; teachers see their own unless another teacher is requested"""
    if teacher_id is None and actor.role in TEACHING_ROLES:
        teacher_id = actor.id
    filters = TaskFilter(
        group_id=group_id,
        teacher_id=teacher_id,
        status=task_status,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order,
    )
    return await task_service.list_tasks(db, filters)


@router.get("/student", response_model=StudentTaskListResponse)
async def list_student_tasks(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    group_ids: Annotated[list[UUID], Depends(get_actor_group_ids)],
    task_status: Annotated[Optional[str], Query(alias="status")] = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=settings.MAX_PAGE_SIZE)] = settings.DEFAULT_PAGE_SIZE,
):
    return await task_service.list_student_tasks(db, actor, group_ids, task_status, page, limit)


@router.get("/{task_id}", response_model=TaskResponse)
async def get_task(
    task_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await task_service.get_task(db, task_id)


@router.patch("/{task_id}", response_model=TaskResponse)
async def update_task(
    task_id: UUID,
    request: TaskUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await task_service.update_task(db, actor, task_id, request)


@router.delete("/{task_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_task(
    task_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    await task_service.delete_task(db, actor, task_id)


@router.delete("", response_model=BulkDeleteResponse)
async def delete_all_tasks(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    deleted = await task_service.delete_all_tasks(db, actor)
    return BulkDeleteResponse(deleted=deleted)
