import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import select

from app.core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.enums import NotificationType, SubmissionStatus, UserRole
from app.models.notification import Notification
from app.schemas.attachment import AttachmentIn
from app.schemas.submission import GradeRequest, SubmissionCreate, SubmissionFilter, SubmissionUpdate
from app.services.submission_service import is_late, submission_service

from conftest import actor_for


def answer(task_id, content="my answer"):
    return SubmissionCreate(task_id=task_id, attachments=[AttachmentIn(type="text", content=content)])


async def notifications_for(db, user, type_):
    result = await db.execute(
        select(Notification)
        .where(Notification.recipient_id == user.id)
        .where(Notification.type == type_)
    )
    return list(result.scalars().all())


async def test_submit_grade_and_lock_flow(db, make_task, classroom):
    teacher, s1 = classroom["teacher"], classroom["s1"]
    task = await make_task(teacher, [classroom["g1"]])

    submission = await submission_service.create_submission(db, actor_for(s1), answer(task.id))
    assert submission.status == SubmissionStatus.SUBMITTED
    assert submission.is_late is False
    received = await notifications_for(db, teacher, NotificationType.SUBMISSION_RECEIVED)
    assert [n.related_id for n in received] == [submission.id]

    with pytest.raises(ConflictError):
        await submission_service.create_submission(db, actor_for(s1), answer(task.id, "again"))

    graded = await submission_service.grade_submission(
        db, actor_for(teacher), submission.id, GradeRequest(points=8)
    )
    assert graded.status == SubmissionStatus.GRADED
    assert graded.points == 8
    assert graded.feedback == ""
    [notice] = await notifications_for(db, s1, NotificationType.TASK_GRADED)
    assert notice.message == "Your submission has been graded. Points: 8"

    with pytest.raises(ForbiddenError):
        await submission_service.update_submission(
            db,
            actor_for(s1),
            submission.id,
            SubmissionUpdate(attachments=[AttachmentIn(type="text", content="edited")]),
        )


def test_is_late_is_strictly_after_deadline():
    from datetime import datetime

    deadline = datetime(2030, 1, 1, 12, 0)
    assert not is_late(deadline, deadline)
    assert is_late(deadline + timedelta(seconds=1), deadline)


async def test_late_submission_is_flagged_when_allowed(db, make_task, classroom, now):
    task = await make_task(classroom["teacher"], [classroom["g1"]], allow_late_submission=True)
    now.advance(hours=2)

    submission = await submission_service.create_submission(db, actor_for(classroom["s1"]), answer(task.id))
    assert submission.is_late is True


async def test_late_submission_is_rejected_when_not_allowed(db, make_task, classroom, now):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    now.advance(hours=2)

    with pytest.raises(ValidationError):
        await submission_service.create_submission(db, actor_for(classroom["s1"]), answer(task.id))


async def test_submission_requires_group_membership(db, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    with pytest.raises(ForbiddenError, match="not assigned to your group"):
        await submission_service.create_submission(db, actor_for(classroom["loner"]), answer(task.id))


async def test_submission_requires_content(db, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    empty = SubmissionCreate(task_id=task.id, attachments=[AttachmentIn(type="text", content="  ")])
    with pytest.raises(ValidationError):
        await submission_service.create_submission(db, actor_for(classroom["s1"]), empty)


async def test_teacher_cannot_submit(db, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    with pytest.raises(ForbiddenError):
        await submission_service.create_submission(db, actor_for(classroom["teacher"]), answer(task.id))


async def test_submission_for_missing_task(db, classroom):
    import uuid

    with pytest.raises(NotFoundError):
        await submission_service.create_submission(db, actor_for(classroom["s1"]), answer(uuid.uuid4()))


async def test_student_edits_own_submission_while_submitted(db, make_task, classroom, now):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    s1 = actor_for(classroom["s1"])
    submission = await submission_service.create_submission(db, s1, answer(task.id))
    now.advance(minutes=5)

    updated = await submission_service.update_submission(
        db,
        s1,
        submission.id,
        SubmissionUpdate(attachments=[AttachmentIn(type="link", content="https://github.com/s1/essay")]),
    )
    assert [a["type"] for a in updated.attachments] == ["link"]
    assert updated.updated_at == now.now

    with pytest.raises(ForbiddenError):
        await submission_service.update_submission(
            db,
            actor_for(classroom["s2"]),
            submission.id,
            SubmissionUpdate(attachments=[AttachmentIn(type="text", content="hijack")]),
        )


async def test_grading_validates_points(db, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]], max_points=10)
    submission = await submission_service.create_submission(db, actor_for(classroom["s1"]), answer(task.id))

    with pytest.raises(ValidationError):
        await submission_service.grade_submission(
            db, actor_for(classroom["teacher"]), submission.id, GradeRequest(points=11)
        )


async def test_only_task_owner_grades(db, make_task, make_user, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    submission = await submission_service.create_submission(db, actor_for(classroom["s1"]), answer(task.id))
    other = await make_user(UserRole.TEACHER)

    with pytest.raises(ForbiddenError):
        await submission_service.grade_submission(db, actor_for(other), submission.id, GradeRequest(points=5))


async def test_status_never_returns_to_submitted(db, make_task, classroom):
    teacher = actor_for(classroom["teacher"])
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    submission = await submission_service.create_submission(db, actor_for(classroom["s1"]), answer(task.id))
    await submission_service.grade_submission(db, teacher, submission.id, GradeRequest(points=7, feedback="Good"))

    returned = await submission_service.update_submission(
        db, teacher, submission.id, SubmissionUpdate(status=SubmissionStatus.RETURNED)
    )
    assert returned.status == SubmissionStatus.RETURNED

    with pytest.raises(ValidationError):
        await submission_service.update_submission(
            db, teacher, submission.id, SubmissionUpdate(status=SubmissionStatus.SUBMITTED)
        )


async def test_get_submission_hides_other_students_work(db, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    submission = await submission_service.create_submission(db, actor_for(classroom["s1"]), answer(task.id))

    assert (await submission_service.get_submission(db, actor_for(classroom["teacher"]), submission.id)).id == submission.id
    with pytest.raises(ForbiddenError):
        await submission_service.get_submission(db, actor_for(classroom["s2"]), submission.id)


async def test_students_only_list_their_own(db, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    await submission_service.create_submission(db, actor_for(classroom["s1"]), answer(task.id))
    await submission_service.create_submission(db, actor_for(classroom["s2"]), answer(task.id))

    mine = await submission_service.list_submissions(
        db, actor_for(classroom["s1"]), SubmissionFilter(student_id=classroom["s2"].id)
    )
    assert [s.student_id for s in mine] == [classroom["s1"].id]

    everything = await submission_service.list_submissions(
        db, actor_for(classroom["teacher"]), SubmissionFilter(task_id=task.id)
    )
    assert len(everything) == 2


async def test_student_cannot_delete_graded_submission(db, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    s1 = actor_for(classroom["s1"])
    submission = await submission_service.create_submission(db, s1, answer(task.id))
    await submission_service.grade_submission(
        db, actor_for(classroom["teacher"]), submission.id, GradeRequest(points=3)
    )

    with pytest.raises(ForbiddenError):
        await submission_service.delete_submission(db, s1, submission.id)

    await submission_service.delete_submission(db, actor_for(classroom["teacher"]), submission.id)
    with pytest.raises(NotFoundError):
        await submission_service.get_submission_or_404(db, submission.id)


async def test_submission_stats(db, make_task, classroom, now):
    teacher = actor_for(classroom["teacher"])
    task = await make_task(classroom["teacher"], [classroom["g1"]], allow_late_submission=True)
    first = await submission_service.create_submission(db, actor_for(classroom["s1"]), answer(task.id))
    now.advance(hours=2)
    await submission_service.create_submission(db, actor_for(classroom["s2"]), answer(task.id))
    await submission_service.grade_submission(db, teacher, first.id, GradeRequest(points=6))

    stats = await submission_service.compute_stats(db, teacher, task.id)
    assert stats.total_submissions == 2
    assert stats.submitted_count == 1
    assert stats.graded_count == 1
    assert stats.late_submissions == 1
    assert stats.average_points == 6.0
    assert stats.max_points == 6
    assert stats.min_points == 6

    with pytest.raises(ForbiddenError):
        await submission_service.compute_stats(db, actor_for(classroom["s1"]))


async def test_concurrent_duplicate_hits_unique_constraint(session_factory, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    s1 = actor_for(classroom["s1"])
    ready = []
    both_checked = asyncio.Event()

    async def attempt(content):
        async with session_factory() as session:
            commit = session.commit

            # Hold each commit until both attempts have passed the duplicate check
            async def gated_commit():
                ready.append(content)
                if len(ready) == 2:
                    both_checked.set()
                await both_checked.wait()
                await commit()

            session.commit = gated_commit
            return await submission_service.create_submission(session, s1, answer(task.id, content))

    results = await asyncio.gather(attempt("one"), attempt("two"), return_exceptions=True)

    conflicts = [r for r in results if isinstance(r, ConflictError)]
    created = [r for r in results if not isinstance(r, Exception)]
    assert len(conflicts) == 1
    assert len(created) == 1
    assert created[0].student_id == classroom["s1"].id


async def test_student_deletes_own_pending_submission(db, make_task, classroom):
    task = await make_task(classroom["teacher"], [classroom["g1"]])
    s1 = actor_for(classroom["s1"])
    submission = await submission_service.create_submission(db, s1, answer(task.id))

    await submission_service.delete_submission(db, s1, submission.id)

    with pytest.raises(NotFoundError):
        await submission_service.get_submission_or_404(db, submission.id)
    # The slot is free again
    again = await submission_service.create_submission(db, s1, answer(task.id, "second try"))
    assert again.id != submission.id
