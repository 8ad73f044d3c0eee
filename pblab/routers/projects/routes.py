from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pblab.dependencies import get_db, require_user
from pblab.schemas.project import LearningGoalsUpdate, PhaseUpdate, ProjectCreate, ReportUpdate
from pblab.services import projects as project_service
from pblab.services.identity import Actor

router = APIRouter(prefix="/projects", tags=["projects"])


@router.post("", name="projects.create")
def create_project(body: ProjectCreate, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    project_id = project_service.create_project(session, actor, body.problem_id, body.team_id)
    return {"success": True, "id": project_id}


@router.get("/{project_id}", name="projects.detail")
def get_project(project_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": project_service.get_project(session, actor, project_id)}


@router.post("/{project_id}/phase", name="projects.update_phase")
def update_phase(
    project_id: str,
    body: PhaseUpdate,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
):
    phase = project_service.update_project_phase(session, actor, project_id, body.new_phase)
    return {"success": True, "data": {"phase": phase}}


@router.post("/{project_id}/report", name="projects.update_report")
def update_report(
    project_id: str,
    body: ReportUpdate,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
):
    phase = project_service.update_project_report(session, actor, project_id, body.report_url, body.report_content)
    return {"success": True, "data": {"phase": phase}}


@router.post("/{project_id}/learning-goals", name="projects.update_learning_goals")
def update_learning_goals(
    project_id: str,
    body: LearningGoalsUpdate,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
):
    project_service.update_project_learning_goals(session, actor, project_id, body.goals)
    return {"success": True, "message": "Learning goals updated"}
