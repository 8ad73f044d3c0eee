from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pblab.dependencies import get_db, require_user
from pblab.schemas.admin import (
    CourseCreate,
    CourseUpdate,
    RoleUpdate,
    TeamCreate,
    TeamMembersUpdate,
    UserCreate,
    UserInvite,
)
from pblab.services import admin as admin_service
from pblab.services.identity import Actor

router = APIRouter(prefix="/admin", tags=["admin"])


# -------- users --------

@router.get("/users", name="admin.users_index")
def users_index(actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": admin_service.list_users(session, actor)}


@router.post("/users", name="admin.users_create")
def users_create(body: UserCreate, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    user_id = admin_service.create_user(session, actor, body.email, body.name, body.role, body.password)
    return {"success": True, "id": user_id}


@router.patch("/users/{user_id}/role", name="admin.users_update_role")
def users_update_role(
    user_id: str,
    body: RoleUpdate,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
):
    admin_service.update_user_role(session, actor, user_id, body.new_role)
    return {"success": True, "message": "User role updated"}


@router.delete("/users/{user_id}", name="admin.users_delete")
def users_delete(user_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    admin_service.delete_user(session, actor, user_id)
    return {"success": True, "message": "User deleted"}


@router.post("/invites", name="admin.users_invite")
def users_invite(body: UserInvite, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    token = admin_service.generate_user_invite(session, actor, body.email, body.name, body.role)
    return {"success": True, "token": token}


@router.get("/educators", name="admin.educators_index")
def educators_index(actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": admin_service.list_educators(session, actor)}


# -------- courses --------

@router.get("/courses", name="admin.courses_index")
def courses_index(actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": admin_service.list_courses(session, actor)}


@router.post("/courses", name="admin.courses_create")
def courses_create(body: CourseCreate, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "id": admin_service.create_course(session, actor, body.name, body.admin_id)}


@router.patch("/courses/{course_id}", name="admin.courses_update")
def courses_update(
    course_id: str,
    body: CourseUpdate,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
):
    admin_service.update_course(session, actor, course_id, body.name)
    return {"success": True, "message": "Course updated"}


@router.delete("/courses/{course_id}", name="admin.courses_delete")
def courses_delete(course_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    admin_service.delete_course(session, actor, course_id)
    return {"success": True, "message": "Course deleted"}


# -------- teams --------

@router.get("/teams", name="admin.teams_index")
def teams_index(actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": admin_service.list_teams(session, actor)}


@router.post("/teams", name="admin.teams_create")
def teams_create(body: TeamCreate, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "id": admin_service.create_team(session, actor, body.course_id, body.name)}


@router.put("/teams/{team_id}/members", name="admin.teams_members")
def teams_members(
    team_id: str,
    body: TeamMembersUpdate,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
):
    admin_service.update_team_members(session, actor, team_id, body.user_ids)
    return {"success": True, "message": "Team members updated"}


@router.delete("/teams/{team_id}", name="admin.teams_delete")
def teams_delete(team_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    admin_service.delete_team(session, actor, team_id)
    return {"success": True, "message": "Team deleted"}


# -------- projects --------

@router.get("/projects", name="admin.projects_index")
def projects_index(actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": admin_service.list_projects(session, actor)}


@router.delete("/projects/{project_id}", name="admin.projects_delete")
def projects_delete(project_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    admin_service.delete_project(session, actor, project_id)
    return {"success": True, "message": "Project deleted"}
