"""Landing-page summaries, one per role."""
from __future__ import annotations

from typing import Any, Callable

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from pblab.errors import AuthorizationError
from pblab.models import Course, Notification, Problem, Project, ProjectPhase, Team, TeamMembership, User, UserRole
from pblab.services.identity import Actor

STUDENT_PROJECT_LIMIT = 10
RECENT_NOTIFICATION_LIMIT = 5
EDUCATOR_PROJECT_LIMIT = 20
PENDING_ASSESSMENT_LIMIT = 10
RECENT_ACTIVITY_LIMIT = 5


def _require_role(actor: Actor, role: UserRole, action: str) -> None:
    if actor.role != role.value:
        raise AuthorizationError(action, f"{role.value} access required", actor.role)


def get_student_dashboard_data(session: Session, actor: Actor) -> dict[str, Any]:
    _require_role(actor, UserRole.STUDENT, "student_dashboard")

    team_ids = select(TeamMembership.team_id).where(TeamMembership.user_id == actor.id)
    projects = (
        session.query(Project)
        .filter(Project.team_id.in_(team_ids), Project.phase != ProjectPhase.CLOSED.value)
        .order_by(Project.updated_at.desc())
        .limit(STUDENT_PROJECT_LIMIT)
        .all()
    )
    recent = (
        session.query(Notification)
        .filter(Notification.recipient_id == actor.id)
        .order_by(Notification.created_at.desc())
        .limit(RECENT_NOTIFICATION_LIMIT)
        .all()
    )
    unread_count = (
        session.query(func.count(Notification.id))
        .filter(Notification.recipient_id == actor.id, Notification.is_read.is_(False))
        .scalar()
    )
    teams = (
        session.query(Team)
        .join(TeamMembership, TeamMembership.team_id == Team.id)
        .filter(TeamMembership.user_id == actor.id)
        .order_by(Team.name.asc())
        .all()
    )

    return {
        "active_projects": [
            {
                "id": p.id,
                "phase": p.phase,
                "problem": {"id": p.problem.id, "title": p.problem.title},
                "team": {"id": p.team.id, "name": p.team.name},
                "updated_at": p.updated_at,
            }
            for p in projects
        ],
        "notifications": {
            "unread_count": unread_count or 0,
            "recent": [
                {
                    "id": n.id,
                    "type": n.type,
                    "actor": {"name": n.actor.name, "email": n.actor.email},
                    "created_at": n.created_at,
                }
                for n in recent
            ],
        },
        "team_memberships": [
            {"team": {"id": t.id, "name": t.name, "course": {"name": t.course.name}}} for t in teams
        ],
    }


def get_educator_dashboard_data(session: Session, actor: Actor) -> dict[str, Any]:
    """Courses the educator administers, their open projects and those waiting to be assessed."""
    _require_role(actor, UserRole.EDUCATOR, "educator_dashboard")

    courses = session.query(Course).filter(Course.admin_id == actor.id).order_by(Course.name.asc()).all()
    course_ids = [c.id for c in courses]

    in_my_courses = session.query(Project).join(Problem, Problem.id == Project.problem_id).filter(
        Problem.course_id.in_(course_ids)
    )
    active = (
        in_my_courses.filter(Project.phase != ProjectPhase.CLOSED.value)
        .order_by(Project.updated_at.desc())
        .limit(EDUCATOR_PROJECT_LIMIT)
        .all()
    )
    pending = (
        in_my_courses.filter(Project.phase == ProjectPhase.POST.value, Project.final_report_url.isnot(None))
        .order_by(Project.updated_at.asc())
        .limit(PENDING_ASSESSMENT_LIMIT)
        .all()
    )

    return {
        "my_courses": [
            {"id": c.id, "name": c.name, "team_count": len(c.teams), "problem_count": len(c.problems)}
            for c in courses
        ],
        "active_projects": [
            {
                "id": p.id,
                "phase": p.phase,
                "problem": {"title": p.problem.title},
                "team": {"name": p.team.name},
                "updated_at": p.updated_at,
            }
            for p in active
        ],
        "pending_assessments": [
            {
                "id": p.id,
                "problem": {"title": p.problem.title},
                "team": {"name": p.team.name},
                "final_report_url": p.final_report_url,
            }
            for p in pending
        ],
    }


def get_admin_dashboard_data(session: Session, actor: Actor) -> dict[str, Any]:
    _require_role(actor, UserRole.ADMIN, "admin_dashboard")

    by_role = dict(session.query(User.role, func.count(User.id)).group_by(User.role).all())
    recent = session.query(Project).order_by(Project.created_at.desc()).limit(RECENT_ACTIVITY_LIMIT).all()

    return {
        "system_overview": {
            "total_users": sum(by_role.values()),
            "total_courses": session.query(func.count(Course.id)).scalar() or 0,
            "total_teams": session.query(func.count(Team.id)).scalar() or 0,
            "total_projects": session.query(func.count(Project.id)).scalar() or 0,
            "active_projects": session.query(func.count(Project.id))
            .filter(Project.phase != ProjectPhase.CLOSED.value)
            .scalar() or 0,
        },
        "recent_activity": [
            {
                "type": "project_created",
                "description": f'Project "{p.problem.title}" started by team "{p.team.name}"',
                "timestamp": p.created_at,
            }
            for p in recent
        ],
        "user_breakdown": {
            "students": by_role.get(UserRole.STUDENT.value, 0),
            "educators": by_role.get(UserRole.EDUCATOR.value, 0),
            "admins": by_role.get(UserRole.ADMIN.value, 0),
        },
    }


DASHBOARDS: dict[str, Callable[[Session, Actor], dict[str, Any]]] = {
    UserRole.STUDENT.value: get_student_dashboard_data,
    UserRole.EDUCATOR.value: get_educator_dashboard_data,
    UserRole.ADMIN.value: get_admin_dashboard_data,
}


def get_dashboard(session: Session, actor: Actor) -> dict[str, Any]:
    """The dashboard matching the caller's role."""
    builder = DASHBOARDS.get(actor.role)
    if builder is None:
        raise AuthorizationError("dashboard", "unknown role", actor.role)
    return {"role": actor.role, **builder(session, actor)}
