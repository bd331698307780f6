from typing import Optional
from datetime import timedelta
from uuid import UUID
import logging

from sqlalchemy import select, func, case, distinct
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import clock
from app.core.config import settings
from app.core.errors import ForbiddenError, NotFoundError, ValidationError
from app.core.permissions import TEACHING_ROLES, Action, Actor, Owners, authorize
from app.models.comment import SubmissionComment
from app.models.enums import AuthorType
from app.models.task import Task, TaskSubmission
from app.schemas.comment import AuthoredCommentResponse, AuthoredCommentListResponse, CommentStats
from app.schemas.common import Pagination
from app.services.submission_service import submission_service

logger = logging.getLogger(__name__)


class CommentService:
    def __init__(self):
        self.edit_window = timedelta(minutes=settings.COMMENT_EDIT_WINDOW_MINUTES)
        self.max_length = settings.COMMENT_MAX_LENGTH

    def _validate_content(self, content: str) -> str:
        if not content:
            raise ValidationError("Comment content is required")
        if len(content) > self.max_length:
            raise ValidationError("Comment too long")
        return content

    async def _thread_owners(self, db: AsyncSession, submission: TaskSubmission) -> Owners:
        result = await db.execute(select(Task.teacher_id).where(Task.id == submission.task_id))
        return Owners(student_id=submission.student_id, teacher_id=result.scalar_one_or_none())

    async def get_comment_or_404(self, db: AsyncSession, comment_id: UUID) -> SubmissionComment:
        result = await db.execute(
            select(SubmissionComment)
            .where(SubmissionComment.id == comment_id)
            .execution_options(populate_existing=True)
        )
        comment = result.scalar_one_or_none()
        if not comment:
            raise NotFoundError("Comment not found")
        return comment

    async def create_comment(
        self,
        db: AsyncSession,
        actor: Actor,
        submission_id: UUID,
        content: str,
    ) -> SubmissionComment:
        submission = await submission_service.get_submission_or_404(db, submission_id)
        owners = await self._thread_owners(db, submission)
        authorize(actor, Action.COMMENT, owners, detail="Unauthorized to comment on this submission")

        content = self._validate_content(content)
        now = clock.utcnow()
        comment = SubmissionComment(
            submission_id=submission.id,
            author_id=actor.id,
            author_type=AuthorType.TEACHER if actor.role in TEACHING_ROLES else AuthorType.STUDENT,
            content=content,
            created_at=now,
            updated_at=now,
        )
        db.add(comment)
        await db.commit()
        logger.info(f"Comment {comment.id} added to submission {submission.id} by {actor.id}")
        return comment

    async def list_comments(
        self,
        db: AsyncSession,
        actor: Actor,
        submission_id: UUID,
    ) -> list[SubmissionComment]:
        submission = await submission_service.get_submission_or_404(db, submission_id)
        owners = await self._thread_owners(db, submission)
        authorize(actor, Action.COMMENT, owners, detail="Unauthorized to view comments on this submission")

        result = await db.execute(
            select(SubmissionComment)
            .where(SubmissionComment.submission_id == submission_id)
            .order_by(SubmissionComment.created_at.asc(), SubmissionComment.id)
        )
        return list(result.scalars().all())

    async def update_comment(
        self,
        db: AsyncSession,
        actor: Actor,
        comment_id: UUID,
        content: str,
    ) -> SubmissionComment:
        comment = await self.get_comment_or_404(db, comment_id)
        authorize(
            actor,
            Action.EDIT_COMMENT,
            Owners(author_id=comment.author_id),
            detail="Only the author can edit this comment",
        )

        now = clock.utcnow()
        if now - comment.created_at >= self.edit_window:
            raise ForbiddenError(
                f"Comment can only be edited within {settings.COMMENT_EDIT_WINDOW_MINUTES} minutes of creation"
            )

        comment.content = self._validate_content(content)
        comment.updated_at = now
        await db.commit()
        logger.info(f"Comment {comment.id} edited by {actor.id}")
        return comment

    async def delete_comment(self, db: AsyncSession, actor: Actor, comment_id: UUID) -> None:
        comment = await self.get_comment_or_404(db, comment_id)
        result = await db.execute(
            select(Task.teacher_id)
            .join(TaskSubmission, TaskSubmission.task_id == Task.id)
            .where(TaskSubmission.id == comment.submission_id)
        )
        owners = Owners(author_id=comment.author_id, teacher_id=result.scalar_one_or_none())
        authorize(actor, Action.DELETE_COMMENT, owners, detail="Unauthorized to delete this comment")

        await db.delete(comment)
        await db.commit()
        logger.info(f"Comment {comment_id} deleted by {actor.id}")

    async def list_comments_by_author(
        self,
        db: AsyncSession,
        actor: Actor,
        page: int = 1,
        limit: int = 10,
    ) -> AuthoredCommentListResponse:
        total = await db.scalar(
            select(func.count(SubmissionComment.id)).where(SubmissionComment.author_id == actor.id)
        )
        result = await db.execute(
            select(SubmissionComment, Task.id, Task.title)
            .outerjoin(TaskSubmission, TaskSubmission.id == SubmissionComment.submission_id)
            .outerjoin(Task, Task.id == TaskSubmission.task_id)
            .where(SubmissionComment.author_id == actor.id)
            .order_by(SubmissionComment.created_at.desc(), SubmissionComment.id)
            .limit(limit)
            .offset((page - 1) * limit)
        )
        comments = [
            AuthoredCommentResponse.model_validate(comment).model_copy(
                update={"task_id": task_id, "task_title": task_title}
            )
            for comment, task_id, task_title in result.all()
        ]
        return AuthoredCommentListResponse(
            comments=comments,
            pagination=Pagination.build(page, limit, total or 0),
        )

    async def comment_stats(
        self,
        db: AsyncSession,
        actor: Actor,
        task_id: Optional[UUID] = None,
        submission_id: Optional[UUID] = None,
    ) -> CommentStats:
        authorize(actor, Action.VIEW_COMMENT_STATS, detail="Only instructors can view comment statistics")

        query = select(
            func.count(SubmissionComment.id),
            func.coalesce(func.sum(case((SubmissionComment.author_type == AuthorType.TEACHER, 1), else_=0)), 0),
            func.coalesce(func.sum(case((SubmissionComment.author_type == AuthorType.STUDENT, 1), else_=0)), 0),
            func.count(distinct(SubmissionComment.submission_id)),
        )
        if submission_id is not None:
            query = query.where(SubmissionComment.submission_id == submission_id)
        elif task_id is not None:
            submission_ids = select(TaskSubmission.id).where(TaskSubmission.task_id == task_id)
            query = query.where(SubmissionComment.submission_id.in_(submission_ids))

        total, teacher, student, threads = (await db.execute(query)).one()
        return CommentStats(
            total_comments=total or 0,
            teacher_comments=teacher,
            student_comments=student,
            average_comments_per_submission=round(total / threads, 2) if threads else 0.0,
        )


comment_service = CommentService()
