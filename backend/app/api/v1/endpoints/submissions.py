from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Annotated, Optional
from uuid import UUID

from app.core.database import get_db
from app.core.permissions import Actor
from app.api.deps import get_current_actor
from app.models.enums import SubmissionStatus
from app.schemas.submission import (
    SubmissionCreate, SubmissionUpdate, SubmissionFilter, GradeRequest,
    SubmissionResponse, SubmissionStats,
)
from app.services.submission_service import submission_service

router = APIRouter()


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
async def create_submission(
    request: SubmissionCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await submission_service.create_submission(db, actor, request)


@router.get("", response_model=list[SubmissionResponse])
async def list_submissions(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    task_id: Optional[UUID] = None,
    student_id: Optional[UUID] = None,
    submission_status: Annotated[Optional[SubmissionStatus], Query(alias="status")] = None,
):
    filters = SubmissionFilter(task_id=task_id, student_id=student_id, status=submission_status)
    return await submission_service.list_submissions(db, actor, filters)


@router.get("/stats", response_model=SubmissionStats)
async def submission_stats(
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
    task_id: Optional[UUID] = None,
):
    return await submission_service.compute_stats(db, actor, task_id)


@router.get("/{submission_id}", response_model=SubmissionResponse)
async def get_submission(
    submission_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await submission_service.get_submission(db, actor, submission_id)


@router.patch("/{submission_id}", response_model=SubmissionResponse)
async def update_submission(
    submission_id: UUID,
    request: SubmissionUpdate,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await submission_service.update_submission(db, actor, submission_id, request)


@router.post("/{submission_id}/grade", response_model=SubmissionResponse)
async def grade_submission(
    submission_id: UUID,
    request: GradeRequest,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    return await submission_service.grade_submission(db, actor, submission_id, request)


@router.delete("/{submission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_submission(
    submission_id: UUID,
    db: Annotated[AsyncSession, Depends(get_db)],
    actor: Annotated[Actor, Depends(get_current_actor)],
):
    await submission_service.delete_submission(db, actor, submission_id)
