from typing import Awaitable, Callable, Optional
from datetime import datetime, timedelta
from uuid import UUID
import logging

from prometheus_client import Counter
from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core import clock
from app.models.enums import NotificationType, RecipientRole, UserRole
from app.models.group import GroupMember
from app.models.notification import Notification
from app.models.task import Task, TaskSubmission
from app.models.user import User
from app.realtime.gateway import push_notification

logger = logging.getLogger(__name__)

NOTIFICATIONS_CREATED = Counter(
    "notifications_created_total",
    "Notifications created by fan-out",
    ["type"],
)

Delivery = Callable[[Notification], Awaitable[None]]


class NotificationService:
    """Derives notification records from lifecycle events.

    Fan-out runs in its own session after the triggering mutation has
    committed, so a failure here is logged and never reaches the caller.
    """

    def __init__(self, delivery: Optional[Delivery] = None):
        self.delivery = delivery

    # Recipient queries

    async def students_in_groups(self, db: AsyncSession, group_ids: list[UUID]) -> list[UUID]:
        if not group_ids:
            return []
        result = await db.execute(
            select(GroupMember.user_id).distinct()
            .join(User, User.id == GroupMember.user_id)
            .where(GroupMember.group_id.in_(group_ids))
            .where(User.role == UserRole.STUDENT)
        )
        return list(result.scalars().all())

    async def students_without_submission(self, db: AsyncSession, task: Task) -> list[UUID]:
        """Students assigned to ``task`` through any of its groups who have not submitted yet."""
        if not task.assigned_groups:
            return []
        submitted = select(TaskSubmission.student_id).where(TaskSubmission.task_id == task.id)
        result = await db.execute(
            select(GroupMember.user_id).distinct()
            .join(User, User.id == GroupMember.user_id)
            .where(GroupMember.group_id.in_(task.assigned_groups))
            .where(User.role == UserRole.STUDENT)
            .where(GroupMember.user_id.not_in(submitted))
        )
        return list(result.scalars().all())

    async def tasks_due_on(self, db: AsyncSession, day: datetime) -> list[Task]:
        start = day.replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)
        result = await db.execute(
            select(Task)
            .where(Task.deadline >= start)
            .where(Task.deadline < end)
            .order_by(Task.deadline.asc())
        )
        return list(result.scalars().all())

    # Fan-out

    async def _fan_out(self, db: AsyncSession, build, event: str) -> list[Notification]:
        session_factory = async_sessionmaker(db.bind, class_=AsyncSession, expire_on_commit=False)
        try:
            async with session_factory() as session:
                notifications = await build(session)
                if not notifications:
                    return []
                session.add_all(notifications)
                await session.commit()
        except Exception as e:
            logger.error(f"Failed to create {event} notifications: {e}")
            return []

        for notification in notifications:
            NOTIFICATIONS_CREATED.labels(type=notification.type.value).inc()
        logger.info(f"Created {len(notifications)} {event} notification(s)")

        await self._deliver(notifications)
        return notifications

    async def _deliver(self, notifications: list[Notification]) -> None:
        if self.delivery is None:
            return
        for notification in notifications:
            try:
                await self.delivery(notification)
            except Exception as e:
                logger.error(f"Failed to deliver notification {notification.id}: {e}")

    def _build(
        self,
        recipient_id: UUID,
        recipient_role: RecipientRole,
        type_: NotificationType,
        title: str,
        message: str,
        related_id: Optional[UUID],
        now: datetime,
    ) -> Notification:
        return Notification(
            recipient_id=recipient_id,
            recipient_role=recipient_role,
            type=type_,
            title=title,
            message=message,
            related_id=related_id,
            is_read=False,
            created_at=now,
        )

    async def notify_task_assigned(self, db: AsyncSession, task: Task) -> list[Notification]:
        async def build(session: AsyncSession) -> list[Notification]:
            now = clock.utcnow()
            student_ids = await self.students_in_groups(session, task.assigned_groups)
            return [
                self._build(
                    student_id,
                    RecipientRole.STUDENT,
                    NotificationType.TASK_ASSIGNED,
                    "New Task Assigned",
                    f'You have been assigned a new task: "{task.title}"',
                    task.id,
                    now,
                )
                for student_id in student_ids
            ]

        return await self._fan_out(db, build, NotificationType.TASK_ASSIGNED.value)

    async def notify_submission_received(
        self,
        db: AsyncSession,
        submission: TaskSubmission,
        task: Task,
    ) -> list[Notification]:
        async def build(session: AsyncSession) -> list[Notification]:
            return [
                self._build(
                    task.teacher_id,
                    RecipientRole.TEACHER,
                    NotificationType.SUBMISSION_RECEIVED,
                    "New Submission Received",
                    f'A student has submitted the task: "{task.title}"',
                    submission.id,
                    clock.utcnow(),
                )
            ]

        return await self._fan_out(db, build, NotificationType.SUBMISSION_RECEIVED.value)

    async def notify_task_graded(self, db: AsyncSession, submission: TaskSubmission) -> list[Notification]:
        async def build(session: AsyncSession) -> list[Notification]:
            return [
                self._build(
                    submission.student_id,
                    RecipientRole.STUDENT,
                    NotificationType.TASK_GRADED,
                    "Task Graded",
                    f"Your submission has been graded. Points: {submission.points}",
                    submission.id,
                    clock.utcnow(),
                )
            ]

        return await self._fan_out(db, build, NotificationType.TASK_GRADED.value)

    async def send_deadline_reminders(self, db: AsyncSession, now: Optional[datetime] = None) -> int:
        """Daily sweep: remind students who have not submitted a task due tomorrow."""
        now = now or clock.utcnow()
        tomorrow = now + timedelta(days=1)
        tasks = await self.tasks_due_on(db, tomorrow)

        total = 0
        for task in tasks:
            async def build(session: AsyncSession, task: Task = task) -> list[Notification]:
                student_ids = await self.students_without_submission(session, task)
                return [
                    self._build(
                        student_id,
                        RecipientRole.STUDENT,
                        NotificationType.DEADLINE_REMINDER,
                        "Deadline Reminder",
                        f'Task "{task.title}" is due tomorrow!',
                        task.id,
                        now,
                    )
                    for student_id in student_ids
                ]

            created = await self._fan_out(db, build, NotificationType.DEADLINE_REMINDER.value)
            total += len(created)

        logger.info(f"Deadline sweep for {tomorrow.date()}: {len(tasks)} task(s), {total} reminder(s)")
        return total

    async def list_for_recipient(
        self,
        db: AsyncSession,
        recipient_id: UUID,
        page: int = 1,
        limit: int = 10,
    ) -> tuple[list[Notification], int]:
        total = await db.scalar(
            select(func.count(Notification.id)).where(Notification.recipient_id == recipient_id)
        )
        result = await db.execute(
            select(Notification)
            .where(Notification.recipient_id == recipient_id)
            .order_by(Notification.created_at.desc())
            .limit(limit)
            .offset((page - 1) * limit)
        )
        return list(result.scalars().all()), total or 0


notification_service = NotificationService(delivery=push_notification)
