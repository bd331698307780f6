import pytest

from app.core.errors import ForbiddenError, ValidationError
from app.models.enums import AuthorType, UserRole
from app.schemas.attachment import AttachmentIn
from app.schemas.submission import SubmissionCreate
from app.services.comment_service import comment_service
from app.services.submission_service import submission_service

from conftest import actor_for


@pytest.fixture
async def thread(db, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]], title="Lab report")
    submission = await submission_service.create_submission(
        db,
        actor_for(classroom["s1"]),
        SubmissionCreate(task_id=task.id, attachments=[AttachmentIn(type="text", content="draft")]),
    )
    return {"task": task, "submission": submission, **classroom}


async def test_both_sides_comment_in_order(db, thread, now):
    submission = thread["submission"]
    first = await comment_service.create_comment(db, actor_for(thread["s1"]), submission.id, "Question?")
    now.advance(minutes=1)
    second = await comment_service.create_comment(db, actor_for(thread["teacher"]), submission.id, "Answer.")

    assert first.author_type == AuthorType.STUDENT
    assert second.author_type == AuthorType.TEACHER

    comments = await comment_service.list_comments(db, actor_for(thread["teacher"]), submission.id)
    assert [c.content for c in comments] == ["Question?", "Answer."]


async def test_outsiders_cannot_comment(db, thread, make_user):
    other_teacher = await make_user(UserRole.TEACHER)
    with pytest.raises(ForbiddenError):
        await comment_service.create_comment(db, actor_for(thread["s2"]), thread["submission"].id, "Hi")
    with pytest.raises(ForbiddenError):
        await comment_service.create_comment(db, actor_for(other_teacher), thread["submission"].id, "Hi")


async def test_comment_length_bounds(db, thread):
    s1 = actor_for(thread["s1"])
    with pytest.raises(ValidationError):
        await comment_service.create_comment(db, s1, thread["submission"].id, "")
    spaces = await comment_service.create_comment(db, s1, thread["submission"].id, "   ")
    assert spaces.content == "   "
    longest = await comment_service.create_comment(db, s1, thread["submission"].id, "x" * 1000)
    assert len(longest.content) == 1000
    with pytest.raises(ValidationError):
        await comment_service.create_comment(db, s1, thread["submission"].id, "x" * 1001)


async def test_edit_window_is_five_minutes(db, thread, now):
    s1 = actor_for(thread["s1"])
    comment = await comment_service.create_comment(db, s1, thread["submission"].id, "typo")

    now.advance(minutes=4, seconds=59)
    edited = await comment_service.update_comment(db, s1, comment.id, "fixed")
    assert edited.content == "fixed"
    assert edited.updated_at == now.now

    now.advance(seconds=1)
    with pytest.raises(ForbiddenError):
        await comment_service.update_comment(db, s1, comment.id, "too late")


async def test_only_author_edits(db, thread):
    comment = await comment_service.create_comment(db, actor_for(thread["s1"]), thread["submission"].id, "mine")
    with pytest.raises(ForbiddenError):
        await comment_service.update_comment(db, actor_for(thread["teacher"]), comment.id, "theirs")


async def test_task_owner_deletes_student_comment(db, thread):
    comment = await comment_service.create_comment(db, actor_for(thread["s1"]), thread["submission"].id, "oops")
    await comment_service.delete_comment(db, actor_for(thread["teacher"]), comment.id)

    remaining = await comment_service.list_comments(db, actor_for(thread["s1"]), thread["submission"].id)
    assert remaining == []


async def test_student_cannot_delete_teacher_comment(db, thread):
    comment = await comment_service.create_comment(
        db, actor_for(thread["teacher"]), thread["submission"].id, "Well done"
    )
    with pytest.raises(ForbiddenError):
        await comment_service.delete_comment(db, actor_for(thread["s1"]), comment.id)


async def test_comments_by_author_newest_first(db, thread, now):
    s1 = actor_for(thread["s1"])
    await comment_service.create_comment(db, s1, thread["submission"].id, "first")
    now.advance(minutes=1)
    await comment_service.create_comment(db, s1, thread["submission"].id, "second")

    page = await comment_service.list_comments_by_author(db, s1, page=1, limit=1)
    assert [c.content for c in page.comments] == ["second"]
    assert page.comments[0].task_title == "Lab report"
    assert page.comments[0].task_id == thread["task"].id
    assert page.pagination.total == 2
    assert page.pagination.total_pages == 2


async def test_comment_stats(db, thread):
    submission = thread["submission"]
    await comment_service.create_comment(db, actor_for(thread["s1"]), submission.id, "a")
    await comment_service.create_comment(db, actor_for(thread["s1"]), submission.id, "b")
    await comment_service.create_comment(db, actor_for(thread["teacher"]), submission.id, "c")

    stats = await comment_service.comment_stats(db, actor_for(thread["teacher"]), task_id=thread["task"].id)
    assert stats.total_comments == 3
    assert stats.teacher_comments == 1
    assert stats.student_comments == 2
    assert stats.average_comments_per_submission == 3.0

    with pytest.raises(ForbiddenError):
        await comment_service.comment_stats(db, actor_for(thread["s1"]))
