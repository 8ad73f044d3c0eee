from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pblab.dependencies import get_db, require_user
from pblab.schemas.assessment import AssessmentFinalize
from pblab.services.assessments import can_assess_project, finalize_assessment, get_project_assessment_results
from pblab.services.identity import Actor

router = APIRouter(prefix="/assessments", tags=["assessments"])


@router.post("/{project_id}/finalize", name="assessments.finalize")
def finalize(
    project_id: str,
    body: AssessmentFinalize,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
):
    """Saves the final rubric scores and closes the project."""
    assessment_id = finalize_assessment(
        session, actor, project_id, [s.model_dump() for s in body.scores], body.overall_feedback
    )
    return {"success": True, "id": assessment_id}


@router.get("/{project_id}/results", name="assessments.results")
def results(project_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": get_project_assessment_results(session, actor, project_id)}


@router.get("/{project_id}/can-assess", name="assessments.can_assess")
def can_assess(project_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": can_assess_project(session, actor, project_id)}
