"""
Access policy evaluation.

Every mutating service calls into this module at the point of mutation; no
permission decision is cached across steps. Denials raise AuthorizationError,
whose user-facing message is deliberately generic.
"""
from __future__ import annotations

import logging

from sqlalchemy.orm import Session

from pblab.errors import AuthorizationError, BusinessLogicError, NotFoundError
from pblab.models import Course, Project, ProjectPhase, Team, TeamMembership
from pblab.permissions import Capability, has_capability, require_capability
from pblab.services.identity import Actor

log = logging.getLogger(__name__)


def is_team_member(session: Session, team_id: str, user_id: str) -> bool:
    return session.get(TeamMembership, (team_id, user_id)) is not None


def owns_course(actor: Actor, course: Course | None) -> bool:
    return course is not None and course.admin_id == actor.id


def can_manage_course(actor: Actor, course: Course | None) -> bool:
    """Admins manage every course; educators manage the courses they administer."""
    if has_capability(actor.role, Capability.ACCESS_ALL_COURSES):
        return True
    return has_capability(actor.role, Capability.MANAGE_PROJECTS) and owns_course(actor, course)


def verify_team_membership(session: Session, team_id: str, actor: Actor) -> None:
    if not is_team_member(session, team_id, actor.id):
        raise AuthorizationError("team_member_required", "not a member of the team", actor.role, {"team_id": team_id})


def load_project(session: Session, project_id: str) -> Project:
    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def verify_project_access(session: Session, project_id: str, actor: Actor) -> Project:
    """Return the project if the actor may see it: admin, owning educator, or team member."""
    project = load_project(session, project_id)
    if can_manage_course(actor, project.team.course):
        return project
    if is_team_member(session, project.team_id, actor.id):
        return project
    log.info("Denied project %s to user %s (%s)", project_id, actor.id, actor.role)
    raise AuthorizationError("access_project", "not authorized for project", actor.role, {"project_id": project_id})


def verify_course_access(session: Session, course_id: str, actor: Actor) -> Course:
    course = session.get(Course, course_id)
    if course is None:
        raise NotFoundError("Course", course_id)
    if not can_manage_course(actor, course):
        raise AuthorizationError("manage_course", "not authorized for course", actor.role, {"course_id": course_id})
    return course


def verify_artifact_permissions(
    session: Session,
    actor: Actor,
    artifact_uploader_id: str,
    team: Team,
    require_ownership: bool = False,
) -> None:
    """
    Ownership-requiring operations (delete) need the uploader or the
    educator/admin override. Other operations (comment) need team membership
    or the override. The educator override only applies to their own courses.
    """
    if has_capability(actor.role, Capability.OVERRIDE_ARTIFACTS) and can_manage_course(actor, team.course):
        return

    if require_ownership and artifact_uploader_id != actor.id:
        raise AuthorizationError("artifact_ownership_required", "not the artifact uploader", actor.role)

    verify_team_membership(session, team.id, actor)


def require_project_creation_permissions(role: str) -> None:
    require_capability(role, Capability.MANAGE_PROJECTS, "create_project")


def require_project_close_permissions(role: str) -> None:
    require_capability(role, Capability.CLOSE_PROJECTS, "close_project")


def require_admin(actor: Actor) -> None:
    require_capability(actor.role, Capability.ADMINISTER, "administer")


def validate_project_not_closed(phase: str, action: str) -> None:
    if phase == ProjectPhase.CLOSED.value:
        raise BusinessLogicError("project_closed", f"Cannot {action} a closed project")
