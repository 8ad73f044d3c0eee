import pytest

from conftest import actor, set_phase
from pblab.errors import AuthorizationError, BusinessLogicError, DatabaseError, NotFoundError, ValidationError
from pblab.models import Comment, Notification, ProjectPhase
from pblab.services import notifications
from pblab.services.artifacts import create_artifact, list_artifact_comments
from pblab.services.notifications import (
    SKIPPED,
    create_comment,
    create_notification,
    get_notifications,
    get_project_mentionable_users,
    mark_notification_as_read,
)


@pytest.fixture(name="artifact_id")
def artifact_fixture(session, world):
    return create_artifact(
        session, actor(world.s1), world.project.id, "Spread model", "https://sheets.example.com/model", "link"
    )


def test_self_notification_is_skipped(session, world):
    result = create_notification(session, actor(world.s1), world.s1.id, "mention_in_comment", "c-1")
    assert result == SKIPPED
    assert session.query(Notification).count() == 0


def test_notification_actor_is_the_caller(session, world):
    result = create_notification(session, actor(world.s1), world.s2.id, "mention_in_comment", "c-1", "/p/x")
    notification = session.get(Notification, result["id"])
    assert notification.actor_id == world.s1.id
    assert notification.recipient_id == world.s2.id
    assert notification.is_read is False


def test_notification_type_and_recipient_are_checked(session, world):
    with pytest.raises(ValidationError):
        create_notification(session, actor(world.s1), world.s2.id, "friend_request", "c-1")
    with pytest.raises(NotFoundError):
        create_notification(session, actor(world.s1), "nobody", "mention_in_comment", "c-1")


def test_mentions_are_filtered_to_project_members(session, world, artifact_id):
    comment_id = create_comment(
        session,
        actor(world.s1),
        artifact_id,
        "@Mia @Terry what do you think of the R0 assumption?",
        [world.s2.id, world.s2.id, world.s1.id, world.outsider.id, world.educator.id, world.admin.id],
    )

    rows = session.query(Notification).all()
    assert sorted(n.recipient_id for n in rows) == sorted([world.s2.id, world.educator.id])
    for n in rows:
        assert n.actor_id == world.s1.id
        assert n.type == "mention_in_comment"
        assert n.reference_id == comment_id
        assert n.reference_url == f"/p/{world.project.id}"


def test_comment_without_mentions(session, world, artifact_id):
    create_comment(session, actor(world.educator), artifact_id, "Nice start")
    comments = list_artifact_comments(session, actor(world.s2), artifact_id)
    assert [c["body"] for c in comments] == ["Nice start"]
    assert comments[0]["author_name"] == "Terry Teacher"
    assert session.query(Notification).count() == 0


def test_outsider_cannot_comment(session, world, artifact_id):
    with pytest.raises(AuthorizationError):
        create_comment(session, actor(world.outsider), artifact_id, "Hi", [world.s1.id])
    assert session.query(Comment).count() == 0
    assert session.query(Notification).count() == 0


def test_closed_project_rejects_comments(session, world, artifact_id):
    set_phase(session, world.project, ProjectPhase.CLOSED)
    with pytest.raises(BusinessLogicError):
        create_comment(session, actor(world.s1), artifact_id, "Too late", [world.s2.id])
    assert session.query(Comment).count() == 0
    assert session.query(Notification).count() == 0


def test_comment_body_is_required(session, world, artifact_id):
    with pytest.raises(ValidationError):
        create_comment(session, actor(world.s1), artifact_id, "   ")


def test_mentionable_users(session, world):
    users = get_project_mentionable_users(session, actor(world.outsider), world.project.id)
    assert {u["id"] for u in users} == {world.s1.id, world.s2.id, world.educator.id}


def test_mark_as_read_is_idempotent(session, world):
    result = create_notification(session, actor(world.s1), world.s2.id, "mention_in_comment", "c-1")
    assert mark_notification_as_read(session, actor(world.s2), result["id"]) == "Notification marked as read"
    assert mark_notification_as_read(session, actor(world.s2), result["id"]) == "Notification already marked as read"
    assert session.get(Notification, result["id"]).is_read is True


def test_only_recipient_marks_as_read(session, world):
    result = create_notification(session, actor(world.s1), world.s2.id, "mention_in_comment", "c-1")
    with pytest.raises(AuthorizationError):
        mark_notification_as_read(session, actor(world.s1), result["id"])
    with pytest.raises(NotFoundError):
        mark_notification_as_read(session, actor(world.s2), "missing")


def test_get_notifications(session, world):
    first = create_notification(session, actor(world.s1), world.s2.id, "mention_in_comment", "c-1")
    create_notification(session, actor(world.educator), world.s2.id, "mention_in_comment", "c-2")
    mark_notification_as_read(session, actor(world.s2), first["id"])

    everything = get_notifications(session, actor(world.s2))
    assert len(everything) == 2
    unread = get_notifications(session, actor(world.s2), unread_only=True)
    assert [n["reference_id"] for n in unread] == ["c-2"]
    assert unread[0]["actor"]["name"] == "Terry Teacher"
    assert get_notifications(session, actor(world.s1)) == []
    assert len(get_notifications(session, actor(world.s2), limit=1)) == 1


@pytest.mark.parametrize("limit", [0, 101])
def test_notification_limit_is_bounded(session, world, limit):
    with pytest.raises(ValidationError):
        get_notifications(session, actor(world.s2), limit=limit)


def test_failed_mention_does_not_undo_comment(session, world, artifact_id, monkeypatch):
    deliver = notifications.create_notification

    def flaky(session, actor, recipient_id, *args, **kwargs):
        if recipient_id == world.s2.id:
            raise DatabaseError("create_notification", "connection reset")
        return deliver(session, actor, recipient_id, *args, **kwargs)

    monkeypatch.setattr(notifications, "create_notification", flaky)

    comment_id = create_comment(
        session, actor(world.s1), artifact_id, "@Mia @Terry please review", [world.s2.id, world.educator.id]
    )

    assert session.get(Comment, comment_id) is not None
    rows = session.query(Notification).all()
    assert [n.recipient_id for n in rows] == [world.educator.id]
