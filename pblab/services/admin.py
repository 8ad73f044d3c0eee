"""System-wide administration of users, courses, teams and projects. Every function requires the admin role."""
from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from pblab.errors import BusinessLogicError, DatabaseError, NotFoundError, ValidationError
from pblab.extensions import transaction
from pblab.models import Course, Problem, Project, Team, TeamMembership, User, UserRole
from pblab.security import create_user_invite_token
from pblab.services.access import require_admin
from pblab.services.identity import Actor
from pblab.utils import dedupe
from pblab.validation import id_list, required_id, required_string, validate_enum

log = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 8


def _commit(session: Session, operation: str, context: Optional[dict[str, Any]] = None) -> None:
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        log.exception("Database error during %s", operation)
        raise DatabaseError(operation, str(exc), exc, context) from exc


def _normalize_email(email: Optional[str]) -> str:
    value = required_string(email, "Email", 255).lower()
    if "@" not in value or value.startswith("@") or value.endswith("@"):
        raise ValidationError("Email", "must be a valid email address", value)
    return value


def _email_taken(session: Session, email: str) -> bool:
    return session.query(User.id).filter(func.lower(User.email) == email).first() is not None


# -------- users --------

def list_users(session: Session, actor: Actor) -> list[dict[str, Any]]:
    require_admin(actor)
    users = session.query(User).order_by(User.created_at.desc()).all()
    return [
        {"id": u.id, "email": u.email, "name": u.name, "role": u.role, "created_at": u.created_at}
        for u in users
    ]


def list_educators(session: Session, actor: Actor) -> list[dict[str, Any]]:
    require_admin(actor)
    educators = (
        session.query(User)
        .filter(User.role == UserRole.EDUCATOR.value)
        .order_by(User.name.asc(), User.email.asc())
        .all()
    )
    return [{"id": u.id, "name": u.display_name, "email": u.email} for u in educators]


def create_user(session: Session, actor: Actor, email: str, name: str, role: str, password: str) -> str:
    require_admin(actor)
    email = _normalize_email(email)
    name = required_string(name, "Name", 200)
    user_role = validate_enum(role, "Role", UserRole)
    password = required_string(password, "Password")
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError("Password", f"must be at least {MIN_PASSWORD_LENGTH} characters long")
    if _email_taken(session, email):
        raise BusinessLogicError("email_taken", "A user with this email already exists")

    user = User(email=email, name=name, role=user_role.value)
    user.set_password(password)
    session.add(user)
    _commit(session, "create_user", {"email": email})
    log.info("Admin %s created user %s (%s)", actor.id, user.id, user.role)
    return user.id


def update_user_role(session: Session, actor: Actor, user_id: str, new_role: str) -> None:
    require_admin(actor)
    user_id = required_id(user_id, "User ID")
    role = validate_enum(new_role, "Role", UserRole)
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    if user.id == actor.id and role is not UserRole.ADMIN:
        raise BusinessLogicError("self_demotion", "You cannot remove your own admin role")

    previous = user.role
    user.role = role.value
    _commit(session, "update_user_role", {"user_id": user_id})
    log.info("Admin %s changed role of %s: %s -> %s", actor.id, user_id, previous, role.value)


def delete_user(session: Session, actor: Actor, user_id: str) -> None:
    require_admin(actor)
    user_id = required_id(user_id, "User ID")
    if user_id == actor.id:
        raise BusinessLogicError("self_delete", "You cannot delete your own account")
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    session.delete(user)
    _commit(session, "delete_user", {"user_id": user_id})
    log.info("Admin %s deleted user %s", actor.id, user_id)


def generate_user_invite(session: Session, actor: Actor, email: str, name: str, role: str) -> str:
    """Signed 7-day token that provisions a new account when accepted."""
    require_admin(actor)
    email = _normalize_email(email)
    name = required_string(name, "Name", 200)
    user_role = validate_enum(role, "Role", UserRole)
    if _email_taken(session, email):
        raise BusinessLogicError("email_taken", "A user with this email already exists")
    return create_user_invite_token(email, name, user_role.value)


# -------- courses --------

def list_courses(session: Session, actor: Actor) -> list[dict[str, Any]]:
    require_admin(actor)
    courses = session.query(Course).order_by(Course.name.asc()).all()
    return [
        {
            "id": c.id,
            "name": c.name,
            "admin_id": c.admin_id,
            "educator_name": c.admin.display_name if c.admin else None,
            "team_count": len(c.teams),
            "problem_count": len(c.problems),
            "created_at": c.created_at,
        }
        for c in courses
    ]


def _course_name_taken(session: Session, name: str, exclude_id: Optional[str] = None) -> bool:
    query = session.query(Course.id).filter(func.lower(Course.name) == name.lower())
    if exclude_id:
        query = query.filter(Course.id != exclude_id)
    return query.first() is not None


def create_course(session: Session, actor: Actor, name: str, admin_id: str) -> str:
    require_admin(actor)
    name = required_string(name, "Course name", 200)
    admin_id = required_id(admin_id, "Educator ID")
    educator = session.get(User, admin_id)
    if educator is None:
        raise NotFoundError("User", admin_id)
    if educator.role != UserRole.EDUCATOR.value:
        raise BusinessLogicError("not_an_educator", "Courses must be administered by an educator")
    if _course_name_taken(session, name):
        raise BusinessLogicError("duplicate_course_name", "A course with this name already exists")

    course = Course(name=name, admin_id=educator.id)
    session.add(course)
    _commit(session, "create_course", {"name": name})
    return course.id


def update_course(session: Session, actor: Actor, course_id: str, name: str) -> None:
    require_admin(actor)
    course = session.get(Course, required_id(course_id, "Course ID"))
    if course is None:
        raise NotFoundError("Course", course_id)
    name = required_string(name, "Course name", 200)
    if _course_name_taken(session, name, exclude_id=course.id):
        raise BusinessLogicError("duplicate_course_name", "A course with this name already exists")
    course.name = name
    _commit(session, "update_course", {"course_id": course.id})


def delete_course(session: Session, actor: Actor, course_id: str) -> None:
    require_admin(actor)
    course = session.get(Course, required_id(course_id, "Course ID"))
    if course is None:
        raise NotFoundError("Course", course_id)
    has_teams = session.query(Team.id).filter_by(course_id=course.id).first() is not None
    has_problems = session.query(Problem.id).filter_by(course_id=course.id).first() is not None
    if has_teams or has_problems:
        raise BusinessLogicError(
            "course_in_use",
            "Cannot delete course with existing teams or problems. Please remove them first.",
        )
    session.delete(course)
    _commit(session, "delete_course", {"course_id": course.id})


# -------- teams --------

def list_teams(session: Session, actor: Actor) -> list[dict[str, Any]]:
    require_admin(actor)
    teams = session.query(Team).order_by(Team.name.asc()).all()
    return [
        {
            "id": t.id,
            "name": t.name,
            "course_id": t.course_id,
            "course_name": t.course.name,
            "members": [
                {"id": m.user.id, "name": m.user.name, "email": m.user.email} for m in t.memberships
            ],
        }
        for t in teams
    ]


def create_team(session: Session, actor: Actor, course_id: str, name: str) -> str:
    require_admin(actor)
    name = required_string(name, "Team name", 200)
    course = session.get(Course, required_id(course_id, "Course ID"))
    if course is None:
        raise NotFoundError("Course", course_id)
    if session.query(Team.id).filter_by(course_id=course.id, name=name).first() is not None:
        raise BusinessLogicError("duplicate_team_name", "A team with this name already exists in this course")

    team = Team(name=name, course_id=course.id)
    session.add(team)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise BusinessLogicError(
            "duplicate_team_name", "A team with this name already exists in this course"
        ) from None
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError("create_team", str(exc), exc, {"course_id": course.id}) from exc
    return team.id


def update_team_members(session: Session, actor: Actor, team_id: str, user_ids: Iterable[str]) -> None:
    """Replace the team's membership with exactly ``user_ids``."""
    require_admin(actor)
    team = session.get(Team, required_id(team_id, "Team ID"))
    if team is None:
        raise NotFoundError("Team", team_id)
    wanted = dedupe(id_list(user_ids, "User ID"))
    if wanted:
        found = {row.id for row in session.query(User.id).filter(User.id.in_(wanted)).all()}
        missing = [uid for uid in wanted if uid not in found]
        if missing:
            raise ValidationError("User IDs", "must all refer to existing users", ", ".join(missing))

    try:
        with transaction(session, f"update_team_members team={team.id}", log):
            session.query(TeamMembership).filter(TeamMembership.team_id == team.id).delete(
                synchronize_session="fetch"
            )
            session.add_all(TeamMembership(team_id=team.id, user_id=uid) for uid in wanted)
    except SQLAlchemyError as exc:
        raise DatabaseError("update_team_members", str(exc), exc, {"team_id": team.id}) from exc
    session.expire(team)


def delete_team(session: Session, actor: Actor, team_id: str) -> None:
    require_admin(actor)
    team = session.get(Team, required_id(team_id, "Team ID"))
    if team is None:
        raise NotFoundError("Team", team_id)
    if session.query(Project.id).filter_by(team_id=team.id).first() is not None:
        raise BusinessLogicError(
            "team_in_use", "Cannot delete team with existing projects. Please remove the projects first."
        )
    session.delete(team)
    _commit(session, "delete_team", {"team_id": team.id})


# -------- projects --------

def list_projects(session: Session, actor: Actor) -> list[dict[str, Any]]:
    require_admin(actor)
    projects = session.query(Project).order_by(Project.created_at.desc()).all()
    return [
        {
            "id": p.id,
            "phase": p.phase,
            "problem_title": p.problem.title,
            "team_name": p.team.name,
            "course_name": p.team.course.name,
            "created_at": p.created_at,
        }
        for p in projects
    ]


def delete_project(session: Session, actor: Actor, project_id: str) -> None:
    require_admin(actor)
    project = session.get(Project, required_id(project_id, "Project ID"))
    if project is None:
        raise NotFoundError("Project", project_id)
    session.delete(project)
    _commit(session, "delete_project", {"project_id": project.id})
    log.info("Admin %s deleted project %s", actor.id, project_id)
