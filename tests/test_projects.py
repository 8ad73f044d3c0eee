import pytest

from conftest import actor, make_team, set_phase
from pblab.errors import AuthorizationError, BusinessLogicError, NotFoundError, ValidationError
from pblab.models import Problem, Project, ProjectPhase
from pblab.services.projects import (
    DUPLICATE_PROJECT_MESSAGE,
    create_project,
    get_project,
    update_project_learning_goals,
    update_project_report,
)

REPORT_URL = "https://docs.example.com/outbreak-report"


def test_educator_creates_project_in_pre(session, world):
    gamma = make_team(session, world.course, "Team Gamma", [world.outsider])
    project_id = create_project(session, actor(world.educator), world.problem.id, gamma.id)
    project = session.get(Project, project_id)
    assert project.phase == "pre"
    assert project.team_id == gamma.id


def test_duplicate_project_is_rejected(session, world):
    with pytest.raises(BusinessLogicError) as excinfo:
        create_project(session, actor(world.educator), world.problem.id, world.team.id)
    assert excinfo.value.user_message == DUPLICATE_PROJECT_MESSAGE
    assert session.query(Project).count() == 1


def test_student_cannot_create_project(session, world):
    with pytest.raises(AuthorizationError):
        create_project(session, actor(world.s1), world.problem.id, world.team.id)


def test_team_and_problem_must_share_course(session, world):
    foreign = make_team(session, world.other_course, "Historians", [])
    with pytest.raises(BusinessLogicError) as excinfo:
        create_project(session, actor(world.admin), world.problem.id, foreign.id)
    assert excinfo.value.rule == "course_mismatch"


def test_educator_cannot_create_project_in_other_course(session, world):
    gamma = make_team(session, world.course, "Team Gamma", [])
    with pytest.raises(AuthorizationError):
        create_project(session, actor(world.other_educator), world.problem.id, gamma.id)


def test_create_project_unknown_problem(session, world):
    with pytest.raises(NotFoundError):
        create_project(session, actor(world.educator), "missing", world.team.id)


def test_report_in_research_advances_to_post(session, world):
    set_phase(session, world.project, ProjectPhase.RESEARCH)
    phase = update_project_report(session, actor(world.s1), world.project.id, REPORT_URL, "Findings...")
    assert phase == "post"
    project = session.get(Project, world.project.id)
    assert project.final_report_url == REPORT_URL
    assert project.final_report_content == "Findings..."


def test_report_in_pre_keeps_phase(session, world):
    phase = update_project_report(session, actor(world.s2), world.project.id, REPORT_URL)
    assert phase == "pre"


def test_report_url_must_be_valid(session, world):
    with pytest.raises(ValidationError):
        update_project_report(session, actor(world.s1), world.project.id, "not a url")


def test_closed_project_rejects_report(session, world):
    set_phase(session, world.project, ProjectPhase.CLOSED)
    with pytest.raises(BusinessLogicError) as excinfo:
        update_project_report(session, actor(world.educator), world.project.id, REPORT_URL)
    assert excinfo.value.user_message == "Cannot submit a report for a closed project"
    assert session.get(Project, world.project.id).final_report_url is None


def test_learning_goals(session, world):
    update_project_learning_goals(session, actor(world.s1), world.project.id, "  Understand R0  ")
    assert session.get(Project, world.project.id).learning_goals == "Understand R0"

    update_project_learning_goals(session, actor(world.s1), world.project.id, "   ")
    assert session.get(Project, world.project.id).learning_goals is None


def test_closed_project_rejects_learning_goals(session, world):
    set_phase(session, world.project, ProjectPhase.CLOSED)
    with pytest.raises(BusinessLogicError):
        update_project_learning_goals(session, actor(world.s1), world.project.id, "Late goals")


def test_get_project(session, world):
    data = get_project(session, actor(world.s2), world.project.id)
    assert data["problem_title"] == "Outbreak Simulator"
    assert data["team_name"] == "Team Alpha"
    assert data["course_id"] == world.course.id


def test_get_project_access(session, world):
    with pytest.raises(AuthorizationError):
        get_project(session, actor(world.outsider), world.project.id)
    with pytest.raises(NotFoundError):
        get_project(session, actor(world.admin), "missing")


def test_deleting_problem_cascades_to_projects(session, world):
    session.delete(session.get(Problem, world.problem.id))
    session.commit()
    assert session.query(Project).count() == 0
