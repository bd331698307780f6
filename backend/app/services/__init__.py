from app.services.attachment_service import AttachmentService
from app.services.notification_service import NotificationService
from app.services.task_service import TaskService
from app.services.submission_service import SubmissionService
from app.services.comment_service import CommentService
from app.services.storage_service import StorageService

__all__ = [
    "AttachmentService",
    "NotificationService",
    "TaskService",
    "SubmissionService",
    "CommentService",
    "StorageService",
]
