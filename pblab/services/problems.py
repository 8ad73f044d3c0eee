"""
Problem composer: a problem with its rubric, criteria and, optionally, teams
with memberships, one project per team and a team invite token.

Everything is validated before the first insert. The inserts then run in one
transaction, so a failure at any stage leaves nothing behind.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pblab.errors import BusinessLogicError, DatabaseError, PBLabError, TeamSetupError, ValidationError
from pblab.extensions import transaction
from pblab.models import Course, Problem, Rubric, RubricCriterion, Team, TeamMembership, User, UserRole
from pblab.security import create_team_invite_token
from pblab.services.access import require_project_creation_permissions, verify_course_access
from pblab.services.identity import Actor
from pblab.services.projects import add_project
from pblab.utils import dedupe
from pblab.validation import optional_string, required_id, required_string

log = logging.getLogger(__name__)

DEFAULT_MAX_SCORE = 5
MIN_MAX_SCORE = 1
MAX_MAX_SCORE = 10

DEFAULT_RUBRIC_NAME = "PBL Assessment Rubric"
DEFAULT_CRITERIA = (
    "Problem Analysis & Understanding: Demonstrates clear comprehension of the problem, identifies key issues, "
    "and shows deep understanding of underlying concepts.",
    "Research & Information Gathering: Effectively researches relevant information from credible sources, "
    "synthesizes findings, and applies knowledge appropriately.",
    "Critical Thinking & Solution Development: Uses logical reasoning, considers multiple perspectives, "
    "and develops well-justified solutions or recommendations.",
    "Collaboration & Communication: Works effectively in a team, communicates ideas clearly, listens to others, "
    "and contributes meaningfully to group discussions.",
    "Reflection & Learning: Demonstrates self-awareness of learning process, identifies knowledge gaps, "
    "and shows evidence of personal growth and understanding.",
)


def default_rubric_template() -> dict[str, Any]:
    """Five-criterion PBL rubric used when a problem is created without one."""
    return {
        "name": DEFAULT_RUBRIC_NAME,
        "criteria": [
            {"criterion_text": text, "max_score": DEFAULT_MAX_SCORE, "sort_order": i}
            for i, text in enumerate(DEFAULT_CRITERIA)
        ],
    }


@dataclass
class CriterionInput:
    criterion_text: str
    sort_order: int
    max_score: int = DEFAULT_MAX_SCORE


@dataclass
class TeamInput:
    name: str
    student_ids: list[str] = field(default_factory=list)


@dataclass
class ProblemInput:
    title: str
    course_id: str
    rubric_name: str
    criteria: list[CriterionInput]
    description: Optional[str] = None
    teams: list[TeamInput] = field(default_factory=list)


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def parse_problem_input(
    title: Optional[str],
    course_id: Optional[str],
    rubric: Optional[Mapping[str, Any]],
    description: Optional[str] = None,
    teams: Optional[Iterable[Mapping[str, Any]]] = None,
) -> ProblemInput:
    title = required_string(title, "Problem title", 255)
    course_id = required_id(course_id, "Course ID")
    description = optional_string(description, "Problem description")
    if rubric is None:
        rubric = default_rubric_template()
    rubric_name = required_string(rubric.get("name"), "Rubric name", 255)

    raw_criteria = list(rubric.get("criteria") or [])
    if not raw_criteria:
        raise ValidationError("Rubric", "must have at least one criterion")

    criteria = []
    sort_orders: set[int] = set()
    for i, raw in enumerate(raw_criteria, start=1):
        text = required_string(raw.get("criterion_text"), f"Criterion {i} text")
        max_score = raw.get("max_score")
        if max_score is None:
            max_score = DEFAULT_MAX_SCORE
        if not _is_int(max_score) or not MIN_MAX_SCORE <= max_score <= MAX_MAX_SCORE:
            raise ValidationError(
                f"Criterion {i} max score", f"must be a number between {MIN_MAX_SCORE} and {MAX_MAX_SCORE}", max_score
            )
        sort_order = raw.get("sort_order")
        if not _is_int(sort_order) or sort_order < 0:
            raise ValidationError(f"Criterion {i} sort order", "must be a non-negative number", sort_order)
        if sort_order in sort_orders:
            raise ValidationError(f"Criterion {i} sort order", "is already used by another criterion", sort_order)
        sort_orders.add(sort_order)
        criteria.append(CriterionInput(text, sort_order, max_score))

    team_inputs = []
    names: set[str] = set()
    for i, raw in enumerate(teams or [], start=1):
        name = required_string(raw.get("name"), f"Team {i} name", 200)
        if name.lower() in names:
            raise ValidationError(f"Team {i} name", "is used by another team in this problem", name)
        names.add(name.lower())
        student_ids = raw.get("student_ids")
        if not isinstance(student_ids, (list, tuple)):
            raise ValidationError(f"Team {i} student IDs", "must be a list")
        student_ids = dedupe(required_id(sid, f"Team {i} student ID") for sid in student_ids)
        if not student_ids:
            raise ValidationError(f"Team {i}", "must have at least one student assigned")
        team_inputs.append(TeamInput(name, student_ids))

    return ProblemInput(title, course_id, rubric_name, criteria, description, team_inputs)


def _check_students_exist(session: Session, teams: list[TeamInput]) -> None:
    wanted = {sid for team in teams for sid in team.student_ids}
    if not wanted:
        return
    found = {
        row.id
        for row in session.query(User.id)
        .filter(User.id.in_(wanted), User.role == UserRole.STUDENT.value)
        .all()
    }
    for i, team in enumerate(teams, start=1):
        missing = [sid for sid in team.student_ids if sid not in found]
        if missing:
            raise ValidationError(f"Team {i} student IDs", "must all refer to existing students", ", ".join(missing))


def _setup_team(session: Session, course: Course, problem: Problem, team_input: TeamInput) -> dict[str, str]:
    clash = session.query(Team.id).filter_by(course_id=course.id, name=team_input.name).first()
    if clash is not None:
        raise BusinessLogicError("duplicate_team_name", f'A team named "{team_input.name}" already exists in this course')

    team = Team(name=team_input.name, course_id=course.id)
    session.add(team)
    session.flush()

    session.add_all(TeamMembership(team_id=team.id, user_id=sid) for sid in team_input.student_ids)
    session.flush()

    add_project(session, problem.id, team.id)
    return {"team_id": team.id, "team_name": team.name, "invite_token": create_team_invite_token(team.id)}


def create_problem(
    session: Session,
    actor: Actor,
    title: Optional[str],
    course_id: Optional[str],
    rubric: Optional[Mapping[str, Any]],
    description: Optional[str] = None,
    teams: Optional[Iterable[Mapping[str, Any]]] = None,
) -> dict[str, Any]:
    """
    Returns ``{"problem_id": ..., "invites": [{"team_id", "team_name", "invite_token"}, ...]}``.

    Team-stage failures raise TeamSetupError so callers can tell them apart
    from a failure to create the problem itself.
    """
    data = parse_problem_input(title, course_id, rubric, description, teams)

    require_project_creation_permissions(actor.role)
    course = verify_course_access(session, data.course_id, actor)
    _check_students_exist(session, data.teams)

    invites: list[dict[str, str]] = []
    try:
        with transaction(session, f"create_problem '{data.title}'", log):
            problem = Problem(
                title=data.title,
                description=data.description,
                creator_id=actor.id,
                course_id=course.id,
            )
            session.add(problem)
            session.flush()

            rubric_row = Rubric(problem_id=problem.id, name=data.rubric_name)
            session.add(rubric_row)
            session.flush()

            session.add_all(
                RubricCriterion(
                    rubric_id=rubric_row.id,
                    criterion_text=c.criterion_text,
                    max_score=c.max_score,
                    sort_order=c.sort_order,
                )
                for c in data.criteria
            )
            session.flush()

            for team_input in data.teams:
                try:
                    invites.append(_setup_team(session, course, problem, team_input))
                except PBLabError as exc:
                    raise TeamSetupError(team_input.name, exc.user_message) from exc
                except SQLAlchemyError as exc:
                    log.exception("Team stage failed for team %r", team_input.name)
                    raise TeamSetupError(team_input.name, "a database error occurred") from exc

            problem_id = problem.id
    except SQLAlchemyError as exc:
        log.exception("Failed to create problem %r in course %s", data.title, course.id)
        raise DatabaseError("create_problem", str(exc), exc, {"course_id": data.course_id}) from exc

    log.info(
        "User %s created problem %s with %d criteria and %d team(s)",
        actor.id, problem_id, len(data.criteria), len(invites),
    )
    return {"problem_id": problem_id, "invites": invites}


def get_students_in_course(session: Session, actor: Actor, course_id: str) -> list[dict[str, Any]]:
    """Students available for team assignment, ordered by name."""
    require_project_creation_permissions(actor.role)
    verify_course_access(session, required_id(course_id, "Course ID"), actor)
    students = (
        session.query(User)
        .filter(User.role == UserRole.STUDENT.value)
        .order_by(User.name.asc(), User.email.asc())
        .all()
    )
    return [{"id": s.id, "name": s.name, "email": s.email} for s in students]
