from __future__ import annotations

import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pblab.errors import BusinessLogicError, DatabaseError, NotFoundError, ValidationError
from pblab.models import Problem, Project, Team
from pblab.services.access import (
    require_project_creation_permissions,
    validate_project_not_closed,
    verify_course_access,
    verify_project_access,
)
from pblab.services.identity import Actor
from pblab.services.phases import check_phase_transition, report_submission_phase
from pblab.utils import is_valid_url

log = logging.getLogger(__name__)

DUPLICATE_PROJECT_MESSAGE = "A project already exists for this team and problem combination"


def project_exists(session: Session, problem_id: str, team_id: str) -> bool:
    return (
        session.query(Project.id).filter_by(problem_id=problem_id, team_id=team_id).first()
        is not None
    )


def add_project(session: Session, problem_id: str, team_id: str) -> Project:
    """
    Stage a new project in ``pre``. Does not commit; the caller owns the
    transaction. The unique constraint still guards concurrent inserts.
    """
    if project_exists(session, problem_id, team_id):
        raise BusinessLogicError(
            "duplicate_project", DUPLICATE_PROJECT_MESSAGE, {"problem_id": problem_id, "team_id": team_id}
        )
    project = Project(problem_id=problem_id, team_id=team_id)
    session.add(project)
    session.flush()
    return project


def create_project(session: Session, actor: Actor, problem_id: str, team_id: str) -> str:
    require_project_creation_permissions(actor.role)
    if not problem_id:
        raise ValidationError("Problem ID", "is required")
    if not team_id:
        raise ValidationError("Team ID", "is required")

    problem = session.get(Problem, problem_id)
    if problem is None:
        raise NotFoundError("Problem", problem_id)
    team = session.get(Team, team_id)
    if team is None:
        raise NotFoundError("Team", team_id)
    if problem.course_id != team.course_id:
        raise BusinessLogicError(
            "course_mismatch",
            "The team and the problem must belong to the same course",
            {"problem_course": problem.course_id, "team_course": team.course_id},
        )
    verify_course_access(session, team.course_id, actor)

    try:
        project = add_project(session, problem_id, team_id)
        session.commit()
    except IntegrityError:
        session.rollback()
        log.info("Duplicate project insert for problem %s team %s", problem_id, team_id)
        raise BusinessLogicError("duplicate_project", DUPLICATE_PROJECT_MESSAGE) from None
    except SQLAlchemyError as exc:
        session.rollback()
        log.exception("Failed to create project for problem %s team %s", problem_id, team_id)
        raise DatabaseError("create_project", str(exc), exc) from exc

    log.info("User %s created project %s", actor.id, project.id)
    return project.id


def update_project_phase(session: Session, actor: Actor, project_id: str, new_phase: str) -> str:
    """Move a project to ``new_phase``. Returns the phase now stored."""
    if not new_phase:
        raise ValidationError("New phase", "is required")
    project = verify_project_access(session, project_id, actor)
    target = check_phase_transition(actor.role, project.phase, new_phase)

    previous = project.phase
    project.phase = target.value
    _commit(session, "update_project_phase", {"project_id": project_id})
    log.info("Project %s phase %s -> %s by %s (%s)", project_id, previous, target.value, actor.id, actor.role)
    return project.phase


def update_project_report(
    session: Session,
    actor: Actor,
    project_id: str,
    report_url: str,
    report_content: Optional[str] = None,
) -> str:
    """Attach the final report. Returns the resulting phase (research auto-advances to post)."""
    if not report_url or not report_url.strip():
        raise ValidationError("Report URL", "is required")
    if not is_valid_url(report_url):
        raise ValidationError("Report URL", "must be a valid URL", report_url)

    project = verify_project_access(session, project_id, actor)
    validate_project_not_closed(project.phase, "submit a report for")

    project.final_report_url = report_url.strip()
    if report_content is not None:
        project.final_report_content = report_content
    project.phase = report_submission_phase(project.phase)
    _commit(session, "update_project_report", {"project_id": project_id})
    return project.phase


def update_project_learning_goals(session: Session, actor: Actor, project_id: str, goals: Optional[str]) -> None:
    project = verify_project_access(session, project_id, actor)
    validate_project_not_closed(project.phase, "update learning goals for")

    cleaned = (goals or "").strip()
    project.learning_goals = cleaned or None
    _commit(session, "update_project_learning_goals", {"project_id": project_id})


def get_project(session: Session, actor: Actor, project_id: str) -> dict[str, Any]:
    project = verify_project_access(session, project_id, actor)
    return serialize_project(project)


def serialize_project(project: Project) -> dict[str, Any]:
    return {
        "id": project.id,
        "problem_id": project.problem_id,
        "problem_title": project.problem.title,
        "team_id": project.team_id,
        "team_name": project.team.name,
        "course_id": project.course_id,
        "phase": project.phase,
        "learning_goals": project.learning_goals,
        "final_report_url": project.final_report_url,
        "created_at": project.created_at,
        "updated_at": project.updated_at,
    }


def _commit(session: Session, operation: str, context: dict[str, Any]) -> None:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        log.exception("Database error during %s %s", operation, context)
        raise DatabaseError(operation, str(exc), exc, context) from exc
