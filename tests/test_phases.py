import pytest

from conftest import actor, set_phase
from pblab.errors import AuthorizationError, BusinessLogicError, ValidationError
from pblab.models import Project, ProjectPhase
from pblab.services.phases import check_phase_transition, next_phase, report_submission_phase
from pblab.services.projects import update_project_phase


@pytest.mark.parametrize("current,target", [("pre", "research"), ("research", "post")])
def test_student_advances_one_step(current, target):
    assert check_phase_transition("student", current, target) is ProjectPhase(target)


def test_student_cannot_skip():
    with pytest.raises(BusinessLogicError) as excinfo:
        check_phase_transition("student", "pre", "post")
    assert excinfo.value.rule == "phase_skip"
    assert excinfo.value.user_message == "Cannot skip phases. Please advance one phase at a time."


@pytest.mark.parametrize("current,target", [("research", "pre"), ("post", "post")])
def test_student_cannot_move_backward_or_stay(current, target):
    with pytest.raises(BusinessLogicError) as excinfo:
        check_phase_transition("student", current, target)
    assert excinfo.value.rule == "phase_not_forward"


def test_student_cannot_close():
    with pytest.raises(AuthorizationError):
        check_phase_transition("student", "post", "closed")


@pytest.mark.parametrize("role", ["educator", "admin"])
@pytest.mark.parametrize("current,target", [("post", "pre"), ("pre", "closed"), ("closed", "research")])
def test_staff_set_any_phase(role, current, target):
    assert check_phase_transition(role, current, target) is ProjectPhase(target)


def test_unknown_phase_is_rejected():
    with pytest.raises(ValidationError):
        check_phase_transition("educator", "pre", "finished")


def test_next_phase():
    assert next_phase("pre") is ProjectPhase.RESEARCH
    assert next_phase("post") is ProjectPhase.CLOSED
    assert next_phase("closed") is None


def test_report_submission_phase():
    assert report_submission_phase("research") == "post"
    assert report_submission_phase("pre") == "pre"
    assert report_submission_phase("post") == "post"


def test_member_advances_project(session, world):
    phase = update_project_phase(session, actor(world.s1), world.project.id, "research")
    assert phase == "research"
    assert session.get(Project, world.project.id).phase == "research"


def test_non_member_cannot_change_phase(session, world):
    with pytest.raises(AuthorizationError):
        update_project_phase(session, actor(world.outsider), world.project.id, "research")
    assert session.get(Project, world.project.id).phase == "pre"


def test_educator_of_other_course_cannot_change_phase(session, world):
    with pytest.raises(AuthorizationError):
        update_project_phase(session, actor(world.other_educator), world.project.id, "research")


def test_educator_reopens_closed_project(session, world):
    set_phase(session, world.project, ProjectPhase.CLOSED)
    phase = update_project_phase(session, actor(world.educator), world.project.id, "post")
    assert phase == "post"


def test_student_cannot_reopen_closed_project(session, world):
    set_phase(session, world.project, ProjectPhase.CLOSED)
    with pytest.raises(BusinessLogicError):
        update_project_phase(session, actor(world.s1), world.project.id, "post")
    assert session.get(Project, world.project.id).phase == "closed"


def test_missing_phase_is_rejected(session, world):
    with pytest.raises(ValidationError):
        update_project_phase(session, actor(world.s1), world.project.id, "")
