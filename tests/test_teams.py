from datetime import timedelta

import pytest

from conftest import actor, make_user
from pblab.errors import AuthenticationError, AuthorizationError, BusinessLogicError
from pblab.models import Team, TeamMembership, UserRole
from pblab.security import create_team_invite_token, create_user_invite_token
from pblab.services.identity import get_authenticated_user
from pblab.services.teams import generate_team_invite, join_team, join_team_with_invite, verify_team_invite


def test_verify_generated_invite(session, world):
    token = generate_team_invite(session, actor(world.educator), world.team.id)
    info = verify_team_invite(session, token)
    assert info["team_id"] == world.team.id
    assert info["team_name"] == "Team Alpha"
    assert info["course_name"] == "Science 9"
    assert info["expires_at"].tzinfo is not None


def test_only_course_staff_generate_invites(session, world):
    with pytest.raises(AuthorizationError):
        generate_team_invite(session, actor(world.s1), world.team.id)
    with pytest.raises(AuthorizationError):
        generate_team_invite(session, actor(world.other_educator), world.team.id)
    assert generate_team_invite(session, actor(world.admin), world.team.id)


def test_join_with_invite(session, world):
    newcomer = make_user(session, "new@example.com", UserRole.STUDENT, "Nia New")
    token = generate_team_invite(session, actor(world.educator), world.team.id)

    result = join_team_with_invite(session, actor(newcomer), token)
    assert result["message"] == "Successfully joined Team Alpha"
    assert session.get(TeamMembership, (world.team.id, newcomer.id)) is not None

    with pytest.raises(BusinessLogicError) as excinfo:
        join_team_with_invite(session, actor(newcomer), token)
    assert excinfo.value.user_message == "You are already a member of this team"


def test_join_by_team_id(session, world):
    assert join_team(session, actor(world.outsider), world.team.id) == "Successfully joined Team Alpha"
    with pytest.raises(BusinessLogicError):
        join_team(session, actor(world.s1), world.team.id)


def test_expired_invite(session, world):
    token = create_team_invite_token(world.team.id, expires_delta=timedelta(seconds=-5))
    with pytest.raises(BusinessLogicError) as excinfo:
        verify_team_invite(session, token)
    assert excinfo.value.rule == "invite_expired"


@pytest.mark.parametrize("kind", ["tampered", "user_invite", "garbage"])
def test_invalid_invites(session, world, kind):
    if kind == "tampered":
        token = create_team_invite_token(world.team.id)
        token = token[:-4] + ("AAAA" if not token.endswith("AAAA") else "BBBB")
    elif kind == "user_invite":
        token = create_user_invite_token("x@example.com", "X", "student")
    else:
        token = "not-a-token"
    with pytest.raises(BusinessLogicError) as excinfo:
        verify_team_invite(session, token)
    assert excinfo.value.rule == "invite_invalid"


def test_invite_for_deleted_team(session, world):
    team = Team(name="Short Lived", course_id=world.course.id)
    session.add(team)
    session.commit()
    token = create_team_invite_token(team.id)
    session.delete(team)
    session.commit()

    with pytest.raises(BusinessLogicError) as excinfo:
        verify_team_invite(session, token)
    assert excinfo.value.rule == "invite_team_missing"


def test_invite_token_is_not_an_access_token(session, world):
    token = create_team_invite_token(world.team.id)
    with pytest.raises(AuthenticationError):
        get_authenticated_user(session, token)
