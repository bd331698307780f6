from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import select, func, delete, distinct
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.errors import NotFoundError, ValidationError
from app.core.permissions import Action, Actor, Owners, authorize
from app.models.comment import SubmissionComment
from app.models.enums import UserRole
from app.models.group import Group, GroupMember
from app.models.task import Task, TaskSubmission, task_groups
from app.models.user import User
from app.schemas.common import Pagination
from app.schemas.task import (
    TaskCreate, TaskUpdate, TaskFilter, TaskResponse, TaskListResponse,
    StudentTaskResponse, StudentTaskListResponse,
)
from app.services.attachment_service import attachment_service
from app.services.notification_service import notification_service

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    "created_at": Task.created_at,
    "deadline": Task.deadline,
    "title": Task.title,
}

STUDENT_TASK_STATUSES = {"pending", "submitted", "active", "expired"}


class TaskService:

    async def get_task_or_404(self, db: AsyncSession, task_id: UUID) -> Task:
        result = await db.execute(
            select(Task)
            .where(Task.id == task_id)
            .execution_options(populate_existing=True)
        )
        task = result.scalar_one_or_none()
        if not task:
            raise NotFoundError("Task not found")
        return task

    async def _load_groups(self, db: AsyncSession, group_ids: list[UUID]) -> list[Group]:
        unique_ids = list(dict.fromkeys(group_ids))
        if not unique_ids:
            raise ValidationError("At least one group must be assigned")
        result = await db.execute(select(Group).where(Group.id.in_(unique_ids)))
        groups = list(result.scalars().all())
        missing = set(unique_ids) - {g.id for g in groups}
        if missing:
            raise ValidationError(f"Unknown group(s): {', '.join(sorted(str(m) for m in missing))}")
        return groups

    # Enrichment, computed per call

    async def submission_counts(self, db: AsyncSession, task_ids: list[UUID]) -> dict[UUID, int]:
        if not task_ids:
            return {}
        result = await db.execute(
            select(TaskSubmission.task_id, func.count(TaskSubmission.id))
            .where(TaskSubmission.task_id.in_(task_ids))
            .group_by(TaskSubmission.task_id)
        )
        return {task_id: count for task_id, count in result.all()}

    async def student_totals(self, db: AsyncSession, task_ids: list[UUID]) -> dict[UUID, int]:
        if not task_ids:
            return {}
        result = await db.execute(
            select(task_groups.c.task_id, func.count(distinct(GroupMember.user_id)))
            .join(GroupMember, GroupMember.group_id == task_groups.c.group_id)
            .join(User, User.id == GroupMember.user_id)
            .where(task_groups.c.task_id.in_(task_ids))
            .where(User.role == UserRole.STUDENT)
            .group_by(task_groups.c.task_id)
        )
        return {task_id: count for task_id, count in result.all()}

    async def _enrich(self, db: AsyncSession, tasks: list[Task]) -> list[TaskResponse]:
        ids = [t.id for t in tasks]
        counts = await self.submission_counts(db, ids)
        totals = await self.student_totals(db, ids)
        return [
            TaskResponse.model_validate(task).model_copy(update={
                "submission_count": counts.get(task.id, 0),
                "total_students": totals.get(task.id, 0),
            })
            for task in tasks
        ]

    # Operations

    async def create_task(self, db: AsyncSession, actor: Actor, data: TaskCreate) -> TaskResponse:
        authorize(actor, Action.CREATE_TASK, detail="Only teachers can create tasks")

        if data.max_points < 0:
            raise ValidationError("Points must be a valid non-negative number")
        groups = await self._load_groups(db, data.assigned_groups)
        attachments = attachment_service.normalize(data.files, data.attachments)

        now = clock.utcnow()
        task = Task(
            teacher_id=actor.id,
            title=data.title,
            description=data.description,
            deadline=clock.to_naive_utc(data.deadline),
            allow_late_submission=data.allow_late_submission,
            max_points=data.max_points,
            attachments=attachment_service.to_column(attachments),
            created_at=now,
            updated_at=now,
        )
        task.groups = groups
        db.add(task)
        await db.commit()

        task = await self.get_task_or_404(db, task.id)
        logger.info(f"Task {task.id} created by {actor.id} for {len(groups)} group(s)")

        await notification_service.notify_task_assigned(db, task)

        return (await self._enrich(db, [task]))[0]

    async def update_task(
        self,
        db: AsyncSession,
        actor: Actor,
        task_id: UUID,
        patch: TaskUpdate,
    ) -> TaskResponse:
        task = await self.get_task_or_404(db, task_id)
        authorize(
            actor,
            Action.UPDATE_TASK,
            Owners(teacher_id=task.teacher_id),
            detail="Only the task owner can update this task",
        )

        fields = patch.model_dump(exclude_unset=True)
        if not fields:
            raise ValidationError("No valid fields to update")

        for name in ("title", "description", "allow_late_submission", "max_points"):
            if fields.get(name) is not None:
                setattr(task, name, fields[name])
        if patch.deadline is not None:
            task.deadline = clock.to_naive_utc(patch.deadline)
        if patch.assigned_groups is not None:
            task.groups = await self._load_groups(db, patch.assigned_groups)
        if patch.attachments is not None or patch.files is not None:
            attachments = attachment_service.normalize(patch.files, patch.attachments)
            task.attachments = attachment_service.to_column(attachments)

        task.updated_at = clock.utcnow()
        await db.commit()

        task = await self.get_task_or_404(db, task_id)
        logger.info(f"Task {task.id} updated by {actor.id}: {', '.join(sorted(fields))}")
        return (await self._enrich(db, [task]))[0]

    async def get_task(self, db: AsyncSession, task_id: UUID) -> TaskResponse:
        task = await self.get_task_or_404(db, task_id)
        return (await self._enrich(db, [task]))[0]

    async def list_tasks(self, db: AsyncSession, filters: TaskFilter) -> TaskListResponse:
        now = clock.utcnow()
        conditions = []
        if filters.teacher_id is not None:
            conditions.append(Task.teacher_id == filters.teacher_id)
        if filters.group_id is not None:
            conditions.append(Task.groups.any(Group.id == filters.group_id))
        if filters.status == "active":
            conditions.append(Task.deadline >= now)
        elif filters.status == "expired":
            conditions.append(Task.deadline < now)

        total = await db.scalar(select(func.count(Task.id)).where(*conditions))

        column = SORT_COLUMNS[filters.sort_by]
        ordering = column.asc() if filters.order == "asc" else column.desc()
        result = await db.execute(
            select(Task)
            .where(*conditions)
            .order_by(ordering, Task.id)
            .limit(filters.limit)
            .offset((filters.page - 1) * filters.limit)
        )
        tasks = list(result.scalars().all())

        return TaskListResponse(
            tasks=await self._enrich(db, tasks),
            pagination=Pagination.build(filters.page, filters.limit, total or 0),
        )

    async def delete_task(self, db: AsyncSession, actor: Actor, task_id: UUID) -> None:
        task = await self.get_task_or_404(db, task_id)
        authorize(
            actor,
            Action.DELETE_TASK,
            Owners(teacher_id=task.teacher_id),
            detail="Only the task owner can delete this task",
        )

        submission_ids = select(TaskSubmission.id).where(TaskSubmission.task_id == task_id)
        await db.execute(delete(SubmissionComment).where(SubmissionComment.submission_id.in_(submission_ids)))
        await db.execute(delete(TaskSubmission).where(TaskSubmission.task_id == task_id))
        await db.delete(task)
        await db.commit()
        logger.info(f"Task {task_id} deleted by {actor.id}")

    async def delete_all_tasks(self, db: AsyncSession, actor: Actor) -> int:
        authorize(actor, Action.DELETE_ALL_TASKS, detail="Admin access required")

        count = await db.scalar(select(func.count(Task.id)))
        await db.execute(delete(SubmissionComment))
        await db.execute(delete(TaskSubmission))
        await db.execute(delete(task_groups))
        await db.execute(delete(Task))
        await db.commit()
        logger.warning(f"All tasks deleted by admin {actor.id} ({count} task(s))")
        return count or 0

    async def list_student_tasks(
        self,
        db: AsyncSession,
        actor: Actor,
        group_ids: list[UUID],
        status: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> StudentTaskListResponse:
        authorize(actor, Action.VIEW_STUDENT_TASKS, detail="Student access required")

        if status is not None and status not in STUDENT_TASK_STATUSES:
            raise ValidationError(f"Unknown status filter: {status}")

        # A student outside every group simply has nothing assigned
        if not group_ids:
            return StudentTaskListResponse(tasks=[], pagination=Pagination.build(page, limit, 0))

        now = clock.utcnow()
        submitted_task_ids = select(TaskSubmission.task_id).where(TaskSubmission.student_id == actor.id)
        conditions = [Task.groups.any(Group.id.in_(group_ids))]
        if status == "pending":
            conditions.append(Task.id.not_in(submitted_task_ids))
        elif status == "submitted":
            conditions.append(Task.id.in_(submitted_task_ids))
        elif status == "active":
            conditions.append(Task.deadline >= now)
        elif status == "expired":
            conditions.append(Task.deadline < now)

        total = await db.scalar(select(func.count(Task.id)).where(*conditions))
        result = await db.execute(
            select(Task)
            .where(*conditions)
            .order_by(Task.deadline.asc(), Task.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        tasks = list(result.scalars().all())

        result = await db.execute(
            select(TaskSubmission)
            .where(TaskSubmission.student_id == actor.id)
            .where(TaskSubmission.task_id.in_([t.id for t in tasks]))
        )
        submissions = {s.task_id: s for s in result.scalars().all()}

        items = []
        for enriched, task in zip(await self._enrich(db, tasks), tasks):
            submission = submissions.get(task.id)
            items.append(StudentTaskResponse(
                **enriched.model_dump(),
                has_submitted=submission is not None,
                submission_id=submission.id if submission else None,
                submission_status=submission.status.value if submission else None,
                is_expired=task.is_expired(now),
                can_submit=task.accepts_submissions(now),
            ))

        return StudentTaskListResponse(
            tasks=items,
            pagination=Pagination.build(page, limit, total or 0),
        )


task_service = TaskService()
