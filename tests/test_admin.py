import pytest

from conftest import actor, make_team
from pblab.errors import AuthenticationError, AuthorizationError, BusinessLogicError, NotFoundError, ValidationError
from pblab.models import Artifact, Course, Project, Team, User
from pblab.security import create_access_token, decode_access_token
from pblab.services import admin as admin_service
from pblab.services.auth import accept_user_invite, authenticate, verify_user_invite
from pblab.services.identity import get_authenticated_user


def test_admin_only(session, world):
    for user in (world.s1, world.educator):
        with pytest.raises(AuthorizationError):
            admin_service.list_users(session, actor(user))
        with pytest.raises(AuthorizationError):
            admin_service.create_course(session, actor(user), "Biology", world.educator.id)


def test_create_user_and_login(session, world):
    user_id = admin_service.create_user(
        session, actor(world.admin), "  New.Teacher@Example.com ", "Nora", "educator", "s3cret-pass"
    )
    user = session.get(User, user_id)
    assert user.email == "new.teacher@example.com"
    assert user.role == "educator"

    logged_in, token = authenticate(session, "NEW.TEACHER@example.com", "s3cret-pass")
    assert logged_in.id == user_id
    assert decode_access_token(token)["sub"] == user_id

    with pytest.raises(AuthenticationError):
        authenticate(session, "new.teacher@example.com", "wrong")


def test_create_user_validation(session, world):
    with pytest.raises(ValidationError):
        admin_service.create_user(session, actor(world.admin), "a@example.com", "A", "student", "short")
    with pytest.raises(ValidationError):
        admin_service.create_user(session, actor(world.admin), "a@example.com", "A", "wizard", "long-enough")
    with pytest.raises(BusinessLogicError):
        admin_service.create_user(session, actor(world.admin), "S1@example.com", "Dup", "student", "long-enough")


def test_role_change_applies_to_existing_tokens(session, world):
    token = create_access_token(data={"sub": world.s1.id})
    admin_service.update_user_role(session, actor(world.admin), world.s1.id, "educator")
    assert get_authenticated_user(session, token).role == "educator"


def test_admin_cannot_demote_or_delete_self(session, world):
    with pytest.raises(BusinessLogicError):
        admin_service.update_user_role(session, actor(world.admin), world.admin.id, "student")
    with pytest.raises(BusinessLogicError):
        admin_service.delete_user(session, actor(world.admin), world.admin.id)
    assert session.get(User, world.admin.id).role == "admin"


def test_delete_user(session, world):
    admin_service.delete_user(session, actor(world.admin), world.outsider.id)
    assert session.get(User, world.outsider.id) is None
    with pytest.raises(NotFoundError):
        admin_service.delete_user(session, actor(world.admin), world.outsider.id)


def test_user_invite_round_trip(session, world):
    token = admin_service.generate_user_invite(session, actor(world.admin), "Invitee@example.com", "Ivy", "educator")
    assert verify_user_invite(token) == {"email": "invitee@example.com", "name": "Ivy", "role": "educator"}

    user_id = accept_user_invite(session, token, "brand-new-pass")
    user = session.get(User, user_id)
    assert user.role == "educator"
    assert user.check_password("brand-new-pass")

    with pytest.raises(BusinessLogicError):
        accept_user_invite(session, token, "brand-new-pass")


def test_user_invite_for_existing_email(session, world):
    with pytest.raises(BusinessLogicError):
        admin_service.generate_user_invite(session, actor(world.admin), "s1@example.com", "Kai", "student")


def test_accept_invite_password_length(session, world):
    token = admin_service.generate_user_invite(session, actor(world.admin), "ivy@example.com", "Ivy", "student")
    with pytest.raises(ValidationError):
        accept_user_invite(session, token, "1234")


def test_courses(session, world):
    course_id = admin_service.create_course(session, actor(world.admin), "Biology 10", world.educator.id)
    assert session.get(Course, course_id).admin_id == world.educator.id

    with pytest.raises(BusinessLogicError):
        admin_service.create_course(session, actor(world.admin), "biology 10", world.educator.id)
    with pytest.raises(BusinessLogicError) as excinfo:
        admin_service.create_course(session, actor(world.admin), "Chemistry", world.s1.id)
    assert excinfo.value.rule == "not_an_educator"

    admin_service.update_course(session, actor(world.admin), course_id, "Biology 11")
    assert session.get(Course, course_id).name == "Biology 11"

    names = [c["name"] for c in admin_service.list_courses(session, actor(world.admin))]
    assert names == ["Biology 11", "History 9", "Science 9"]

    admin_service.delete_course(session, actor(world.admin), course_id)
    assert session.get(Course, course_id) is None


def test_course_in_use_cannot_be_deleted(session, world):
    with pytest.raises(BusinessLogicError) as excinfo:
        admin_service.delete_course(session, actor(world.admin), world.course.id)
    assert excinfo.value.rule == "course_in_use"


def test_teams(session, world):
    team_id = admin_service.create_team(session, actor(world.admin), world.course.id, "Team Gamma")
    with pytest.raises(BusinessLogicError):
        admin_service.create_team(session, actor(world.admin), world.course.id, "Team Gamma")

    admin_service.update_team_members(session, actor(world.admin), team_id, [world.s1.id, world.outsider.id])
    assert session.get(Team, team_id).member_ids == {world.s1.id, world.outsider.id}

    admin_service.update_team_members(session, actor(world.admin), team_id, [world.s2.id])
    assert session.get(Team, team_id).member_ids == {world.s2.id}

    with pytest.raises(ValidationError):
        admin_service.update_team_members(session, actor(world.admin), team_id, ["ghost"])
    assert session.get(Team, team_id).member_ids == {world.s2.id}

    admin_service.delete_team(session, actor(world.admin), team_id)
    assert session.get(Team, team_id) is None


def test_team_with_projects_cannot_be_deleted(session, world):
    with pytest.raises(BusinessLogicError) as excinfo:
        admin_service.delete_team(session, actor(world.admin), world.team.id)
    assert excinfo.value.rule == "team_in_use"


def test_delete_project_removes_artifacts(session, world):
    session.add(Artifact(
        project_id=world.project.id, uploader_id=world.s1.id, title="Notes", url="https://n.example.com", type="link"
    ))
    session.commit()

    rows = admin_service.list_projects(session, actor(world.admin))
    assert rows[0]["team_name"] == "Team Alpha"

    admin_service.delete_project(session, actor(world.admin), world.project.id)
    assert session.query(Project).count() == 0
    assert session.query(Artifact).count() == 0


def test_list_users_and_educators(session, world):
    make_team(session, world.course, "Team Delta", [world.s2])
    assert len(admin_service.list_users(session, actor(world.admin))) == 6
    educators = admin_service.list_educators(session, actor(world.admin))
    assert [e["name"] for e in educators] == ["Olive Other", "Terry Teacher"]
    teams = {t["name"]: t for t in admin_service.list_teams(session, actor(world.admin))}
    assert [m["id"] for m in teams["Team Delta"]["members"]] == [world.s2.id]
