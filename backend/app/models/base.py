from app.models.user import User
from app.models.group import Group, GroupMember
from app.models.task import Task, TaskSubmission, task_groups
from app.models.comment import SubmissionComment
from app.models.notification import Notification

__all__ = [
    "User",
    "Group",
    "GroupMember",
    "Task",
    "TaskSubmission",
    "task_groups",
    "SubmissionComment",
    "Notification",
]
