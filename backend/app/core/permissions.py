"""Authorization rules for task, submission and comment operations.

Every mutating service call asks :func:`can_act` (or :func:`authorize`)
whether ``(actor, action, owners)`` is permitted. Teachers and instructors
are the same grading authority; admins may do anything.
"""
import enum
from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from app.core.errors import ForbiddenError
from app.models.enums import UserRole

TEACHING_ROLES = frozenset({UserRole.TEACHER, UserRole.INSTRUCTOR})
STUDENT_ROLES = frozenset({UserRole.STUDENT})
ANY_ROLE = frozenset(UserRole)


@dataclass(frozen=True)
class Actor:
    id: UUID
    role: UserRole

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    @property
    def is_student(self) -> bool:
        return self.role == UserRole.STUDENT


@dataclass(frozen=True)
class Owners:
    """Owner ids of the resource an action targets."""
    student_id: Optional[UUID] = None
    teacher_id: Optional[UUID] = None
    author_id: Optional[UUID] = None


class Action(str, enum.Enum):
    CREATE_TASK = "create_task"
    UPDATE_TASK = "update_task"
    DELETE_TASK = "delete_task"
    DELETE_ALL_TASKS = "delete_all_tasks"
    VIEW_STUDENT_TASKS = "view_student_tasks"
    CREATE_SUBMISSION = "create_submission"
    VIEW_SUBMISSION = "view_submission"
    EDIT_SUBMISSION = "edit_submission"
    GRADE_SUBMISSION = "grade_submission"
    DELETE_SUBMISSION = "delete_submission"
    VIEW_SUBMISSION_STATS = "view_submission_stats"
    COMMENT = "comment"
    EDIT_COMMENT = "edit_comment"
    DELETE_COMMENT = "delete_comment"
    VIEW_COMMENT_STATS = "view_comment_stats"


@dataclass(frozen=True)
class Grant:
    roles: frozenset
    # Owners attribute the actor id must match; None means role alone suffices
    owner: Optional[str] = None


RULES: dict[Action, tuple[Grant, ...]] = {
    Action.CREATE_TASK: (Grant(TEACHING_ROLES),),
    Action.UPDATE_TASK: (Grant(TEACHING_ROLES, "teacher_id"),),
    Action.DELETE_TASK: (Grant(TEACHING_ROLES, "teacher_id"),),
    Action.DELETE_ALL_TASKS: (),
    Action.VIEW_STUDENT_TASKS: (Grant(STUDENT_ROLES),),
    Action.CREATE_SUBMISSION: (Grant(STUDENT_ROLES),),
    Action.VIEW_SUBMISSION: (
        Grant(STUDENT_ROLES, "student_id"),
        Grant(TEACHING_ROLES),
    ),
    Action.EDIT_SUBMISSION: (Grant(STUDENT_ROLES, "student_id"),),
    Action.GRADE_SUBMISSION: (Grant(TEACHING_ROLES, "teacher_id"),),
    Action.DELETE_SUBMISSION: (
        Grant(STUDENT_ROLES, "student_id"),
        Grant(TEACHING_ROLES, "teacher_id"),
    ),
    Action.VIEW_SUBMISSION_STATS: (Grant(TEACHING_ROLES),),
    Action.COMMENT: (
        Grant(STUDENT_ROLES, "student_id"),
        Grant(TEACHING_ROLES, "teacher_id"),
    ),
    Action.EDIT_COMMENT: (Grant(ANY_ROLE, "author_id"),),
    Action.DELETE_COMMENT: (
        Grant(ANY_ROLE, "author_id"),
        Grant(TEACHING_ROLES, "teacher_id"),
    ),
    Action.VIEW_COMMENT_STATS: (Grant(TEACHING_ROLES),),
}


def can_act(actor: Actor, action: Action, owners: Optional[Owners] = None) -> bool:
    if actor.is_admin:
        return True

    owners = owners or Owners()
    for grant in RULES[action]:
        if actor.role not in grant.roles:
            continue
        if grant.owner is None:
            return True
        owner_id = getattr(owners, grant.owner)
        if owner_id is not None and owner_id == actor.id:
            return True
    return False


def authorize(
    actor: Actor,
    action: Action,
    owners: Optional[Owners] = None,
    detail: str = "Insufficient permissions",
) -> None:
    if not can_act(actor, action, owners):
        raise ForbiddenError(detail)
