from typing import Optional
from uuid import UUID
import logging

from sqlalchemy import select, func, case, delete
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.core.permissions import Action, Actor, Owners, authorize
from app.models.comment import SubmissionComment
from app.models.enums import SubmissionStatus
from app.models.group import GroupMember
from app.models.task import Task, TaskSubmission
from app.schemas.submission import (
    SubmissionCreate, SubmissionUpdate, SubmissionFilter, GradeRequest, SubmissionStats,
)
from app.services.attachment_service import attachment_service
from app.services.notification_service import notification_service
from app.services.task_service import task_service

logger = logging.getLogger(__name__)

# Once a submission leaves "submitted" it never goes back
STATUS_TRANSITIONS = {
    SubmissionStatus.SUBMITTED: {SubmissionStatus.SUBMITTED, SubmissionStatus.GRADED, SubmissionStatus.RETURNED},
    SubmissionStatus.GRADED: {SubmissionStatus.GRADED, SubmissionStatus.RETURNED},
    SubmissionStatus.RETURNED: {SubmissionStatus.RETURNED, SubmissionStatus.GRADED},
}


def is_late(submitted_at, deadline) -> bool:
    return submitted_at > deadline


class SubmissionService:

    async def get_submission_or_404(self, db: AsyncSession, submission_id: UUID) -> TaskSubmission:
        result = await db.execute(
            select(TaskSubmission)
            .where(TaskSubmission.id == submission_id)
            .execution_options(populate_existing=True)
        )
        submission = result.scalar_one_or_none()
        if not submission:
            raise NotFoundError("Submission not found")
        return submission

    async def _get_parent_task(self, db: AsyncSession, submission: TaskSubmission) -> Optional[Task]:
        result = await db.execute(select(Task).where(Task.id == submission.task_id))
        return result.scalar_one_or_none()

    async def student_group_ids(self, db: AsyncSession, student_id: UUID) -> list[UUID]:
        result = await db.execute(
            select(GroupMember.group_id).where(GroupMember.user_id == student_id)
        )
        return list(result.scalars().all())

    def _validate_points(self, points: int, task: Optional[Task]) -> None:
        if points < 0:
            raise ValidationError("Points must be a valid non-negative number")
        if task is not None and points > task.max_points:
            raise ValidationError("Points cannot exceed maximum points for this task")

    def _validate_transition(self, current: SubmissionStatus, target: SubmissionStatus) -> None:
        if target not in STATUS_TRANSITIONS[current]:
            raise ValidationError(f"Cannot change submission status from {current.value} to {target.value}")

    def _owners(self, submission: TaskSubmission, task: Optional[Task]) -> Owners:
        return Owners(
            student_id=submission.student_id,
            teacher_id=task.teacher_id if task else None,
        )

    async def create_submission(
        self,
        db: AsyncSession,
        actor: Actor,
        data: SubmissionCreate,
    ) -> TaskSubmission:
        authorize(actor, Action.CREATE_SUBMISSION, detail="Only students can submit tasks")

        task = await task_service.get_task_or_404(db, data.task_id)

        group_ids = await self.student_group_ids(db, actor.id)
        if not set(group_ids) & set(task.assigned_groups):
            raise ForbiddenError("Task not assigned to your group")

        result = await db.execute(
            select(TaskSubmission.id)
            .where(TaskSubmission.task_id == task.id)
            .where(TaskSubmission.student_id == actor.id)
        )
        if result.scalar_one_or_none():
            raise ConflictError("Submission already exists for this task")

        now = clock.utcnow()
        late = is_late(now, task.deadline)
        if late and not task.allow_late_submission:
            raise ValidationError("Deadline has passed and late submissions are not allowed")

        attachments = attachment_service.normalize(data.files, data.attachments)
        if not attachments:
            raise ValidationError("Submission must contain at least one attachment")

        submission = TaskSubmission(
            task_id=task.id,
            student_id=actor.id,
            attachments=attachment_service.to_column(attachments),
            submitted_at=now,
            is_late=late,
            status=SubmissionStatus.SUBMITTED,
            updated_at=now,
        )
        db.add(submission)
        try:
            await db.commit()
        except IntegrityError:
            # Lost the race against a concurrent submission for the same pair
            await db.rollback()
            raise ConflictError("Submission already exists for this task")

        logger.info(f"Submission {submission.id} created for task {task.id} by {actor.id} (late={late})")

        await notification_service.notify_submission_received(db, submission, task)
        return submission

    async def get_submission(self, db: AsyncSession, actor: Actor, submission_id: UUID) -> TaskSubmission:
        submission = await self.get_submission_or_404(db, submission_id)
        authorize(
            actor,
            Action.VIEW_SUBMISSION,
            Owners(student_id=submission.student_id),
            detail="Unauthorized to view this submission",
        )
        return submission

    async def update_submission(
        self,
        db: AsyncSession,
        actor: Actor,
        submission_id: UUID,
        patch: SubmissionUpdate,
    ) -> TaskSubmission:
        submission = await self.get_submission_or_404(db, submission_id)
        task = await self._get_parent_task(db, submission)

        if actor.is_student:
            authorize(
                actor,
                Action.EDIT_SUBMISSION,
                Owners(student_id=submission.student_id),
                detail="Unauthorized to update this submission",
            )
            if submission.status != SubmissionStatus.SUBMITTED:
                raise ForbiddenError("Cannot update graded submission")
            if patch.attachments is None and patch.files is None:
                raise ValidationError("No valid fields to update")

            attachments = attachment_service.normalize(patch.files, patch.attachments)
            if not attachments:
                raise ValidationError("Submission must contain at least one attachment")
            submission.attachments = attachment_service.to_column(attachments)
            changed = ["attachments"]
        else:
            authorize(
                actor,
                Action.GRADE_SUBMISSION,
                self._owners(submission, task),
                detail="Insufficient permissions",
            )
            changed = []
            if patch.points is not None:
                self._validate_points(patch.points, task)
                submission.points = patch.points
                changed.append("points")
            if patch.feedback is not None:
                submission.feedback = patch.feedback
                changed.append("feedback")
            if patch.status is not None:
                self._validate_transition(submission.status, patch.status)
                submission.status = patch.status
                changed.append("status")
            if not changed:
                raise ValidationError("No valid fields to update")

        submission.updated_at = clock.utcnow()
        await db.commit()
        logger.info(f"Submission {submission.id} updated by {actor.id}: {', '.join(changed)}")
        return submission

    async def grade_submission(
        self,
        db: AsyncSession,
        actor: Actor,
        submission_id: UUID,
        grade: GradeRequest,
    ) -> TaskSubmission:
        submission = await self.get_submission_or_404(db, submission_id)
        task = await self._get_parent_task(db, submission)
        authorize(
            actor,
            Action.GRADE_SUBMISSION,
            self._owners(submission, task),
            detail="Only the task owner can grade submissions",
        )

        self._validate_points(grade.points, task)
        self._validate_transition(submission.status, SubmissionStatus.GRADED)

        submission.points = grade.points
        submission.feedback = grade.feedback or ""
        submission.status = SubmissionStatus.GRADED
        submission.updated_at = clock.utcnow()
        await db.commit()
        logger.info(f"Submission {submission.id} graded by {actor.id}: {grade.points} point(s)")

        await notification_service.notify_task_graded(db, submission)
        return submission

    async def delete_submission(self, db: AsyncSession, actor: Actor, submission_id: UUID) -> None:
        submission = await self.get_submission_or_404(db, submission_id)
        task = await self._get_parent_task(db, submission)
        authorize(
            actor,
            Action.DELETE_SUBMISSION,
            self._owners(submission, task),
            detail="Unauthorized to delete this submission",
        )
        if actor.is_student and submission.status != SubmissionStatus.SUBMITTED:
            raise ForbiddenError("Submission cannot be deleted once it has been graded")

        await db.execute(delete(SubmissionComment).where(SubmissionComment.submission_id == submission.id))
        await db.delete(submission)
        await db.commit()
        logger.info(f"Submission {submission_id} deleted by {actor.id}")

    async def list_submissions(
        self,
        db: AsyncSession,
        actor: Actor,
        filters: SubmissionFilter,
    ) -> list[TaskSubmission]:
        query = select(TaskSubmission)

        # Students only ever see their own work
        if actor.is_student:
            query = query.where(TaskSubmission.student_id == actor.id)
        elif filters.student_id is not None:
            query = query.where(TaskSubmission.student_id == filters.student_id)

        if filters.task_id is not None:
            query = query.where(TaskSubmission.task_id == filters.task_id)
        if filters.status is not None:
            query = query.where(TaskSubmission.status == filters.status)

        result = await db.execute(query.order_by(TaskSubmission.submitted_at.desc(), TaskSubmission.id))
        return list(result.scalars().all())

    async def compute_stats(
        self,
        db: AsyncSession,
        actor: Actor,
        task_id: Optional[UUID] = None,
    ) -> SubmissionStats:
        authorize(actor, Action.VIEW_SUBMISSION_STATS, detail="Only instructors can view statistics")

        def count_status(value: SubmissionStatus):
            return func.coalesce(func.sum(case((TaskSubmission.status == value, 1), else_=0)), 0)

        query = select(
            func.count(TaskSubmission.id),
            count_status(SubmissionStatus.SUBMITTED),
            count_status(SubmissionStatus.GRADED),
            count_status(SubmissionStatus.RETURNED),
            func.coalesce(func.sum(case((TaskSubmission.is_late.is_(True), 1), else_=0)), 0),
            func.avg(TaskSubmission.points),
            func.max(TaskSubmission.points),
            func.min(TaskSubmission.points),
        )
        if task_id is not None:
            query = query.where(TaskSubmission.task_id == task_id)

        row = (await db.execute(query)).one()
        total, submitted, graded, returned, late, average, maximum, minimum = row
        return SubmissionStats(
            total_submissions=total or 0,
            submitted_count=submitted,
            graded_count=graded,
            returned_count=returned,
            late_submissions=late,
            average_points=float(average) if average is not None else None,
            max_points=maximum,
            min_points=minimum,
        )


submission_service = SubmissionService()
