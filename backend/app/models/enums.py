import enum


class UserRole(str, enum.Enum):
    STUDENT = "student"
    TEACHER = "teacher"
    INSTRUCTOR = "instructor"
    ADMIN = "admin"


class SubmissionStatus(str, enum.Enum):
    SUBMITTED = "submitted"
    GRADED = "graded"
    RETURNED = "returned"


class AttachmentType(str, enum.Enum):
    TEXT = "text"
    IMAGE = "image"
    LINK = "link"
    FILE = "file"


class AuthorType(str, enum.Enum):
    TEACHER = "teacher"
    STUDENT = "student"


class NotificationType(str, enum.Enum):
    TASK_ASSIGNED = "task_assigned"
    SUBMISSION_RECEIVED = "submission_received"
    TASK_GRADED = "task_graded"
    DEADLINE_REMINDER = "deadline_reminder"


class RecipientRole(str, enum.Enum):
    TEACHER = "teacher"
    STUDENT = "student"
