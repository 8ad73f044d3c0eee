from types import SimpleNamespace

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from pblab.dependencies import get_db
from pblab.extensions import Base
from pblab.main import app
from pblab.models import (
    Course,
    Problem,
    Project,
    ProjectPhase,
    Rubric,
    RubricCriterion,
    Team,
    TeamMembership,
    User,
    UserRole,
)
from pblab.security import create_access_token
from pblab.services.identity import Actor

DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(DATABASE_URL, connect_args={"check_same_thread": False}, poolclass=StaticPool)
TestingSession = sessionmaker(bind=engine, autoflush=False)


@pytest.fixture(name="session")
def session_fixture():
    Base.metadata.create_all(engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)


@pytest.fixture(name="client")
def client_fixture(session):
    def get_db_override():
        yield session

    app.dependency_overrides[get_db] = get_db_override
    client = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
    yield client
    app.dependency_overrides.clear()


def make_user(session, email, role=UserRole.STUDENT, name=None, password=None):
    user = User(email=email, name=name or email.split("@")[0].title(), role=role.value)
    if password:
        user.set_password(password)
    session.add(user)
    session.commit()
    return user


def make_team(session, course, name, members=()):
    team = Team(name=name, course_id=course.id)
    session.add(team)
    session.flush()
    session.add_all(TeamMembership(team_id=team.id, user_id=m.id) for m in members)
    session.commit()
    return team


def make_project(session, problem, team, phase=ProjectPhase.PRE):
    project = Project(problem_id=problem.id, team_id=team.id, phase=phase.value)
    session.add(project)
    session.commit()
    return project


def actor(user):
    return Actor.from_user(user)


def auth_headers(user):
    return {"Authorization": f"Bearer {create_access_token(data={'sub': user.id})}"}


def set_phase(session, project, phase):
    project.phase = phase.value
    session.commit()


@pytest.fixture(name="world")
def world_fixture(session):
    """
    One course run by ``educator`` with a two-student team working on a
    two-criterion problem, plus an admin, a student outside the team and an
    educator who runs a different course.
    """
    admin = make_user(session, "admin@example.com", UserRole.ADMIN, "Ada Admin")
    educator = make_user(session, "teacher@example.com", UserRole.EDUCATOR, "Terry Teacher")
    other_educator = make_user(session, "other@example.com", UserRole.EDUCATOR, "Olive Other")
    s1 = make_user(session, "s1@example.com", UserRole.STUDENT, "Kai Nguyen")
    s2 = make_user(session, "s2@example.com", UserRole.STUDENT, "Mia Singh")
    outsider = make_user(session, "s3@example.com", UserRole.STUDENT, "Sam Outsider")

    course = Course(name="Science 9", admin_id=educator.id)
    other_course = Course(name="History 9", admin_id=other_educator.id)
    session.add_all([course, other_course])
    session.commit()

    team = make_team(session, course, "Team Alpha", [s1, s2])
    make_team(session, course, "Team Beta", [outsider])

    problem = Problem(
        title="Outbreak Simulator",
        description="Model how a disease spreads through a school.",
        creator_id=educator.id,
        course_id=course.id,
    )
    session.add(problem)
    session.flush()
    rubric = Rubric(problem_id=problem.id, name="Outbreak Rubric")
    session.add(rubric)
    session.flush()
    research = RubricCriterion(rubric_id=rubric.id, criterion_text="Research quality", max_score=5, sort_order=1)
    model = RubricCriterion(rubric_id=rubric.id, criterion_text="Model design", max_score=10, sort_order=0)
    session.add_all([research, model])
    session.commit()

    project = make_project(session, problem, team)

    return SimpleNamespace(
        admin=admin,
        educator=educator,
        other_educator=other_educator,
        s1=s1,
        s2=s2,
        outsider=outsider,
        course=course,
        other_course=other_course,
        team=team,
        problem=problem,
        rubric=rubric,
        research=research,
        model=model,
        project=project,
    )
