from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pblab.dependencies import get_ai_client, get_db, require_user
from pblab.schemas.ai import AiAssessRequest, AiUsageCreate, ProjectRef, TutorRequest
from pblab.services import ai as ai_service
from pblab.services.identity import Actor

router = APIRouter(prefix="/ai", tags=["ai"])


@router.post("/suggest-goals", name="ai.suggest_goals")
async def suggest_goals(
    body: ProjectRef,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
    client: ai_service.CompletionClient = Depends(get_ai_client),
):
    suggestions = await ai_service.suggest_learning_goals(session, actor, client, body.project_id)
    return {"success": True, "data": {"suggestions": suggestions}}


@router.post("/tutor", name="ai.tutor")
async def tutor(
    body: TutorRequest,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
    client: ai_service.CompletionClient = Depends(get_ai_client),
):
    reply = await ai_service.ai_tutor(session, actor, client, body.project_id, body.message)
    return {"success": True, "data": {"response": reply}}


@router.post("/assess", name="ai.assess")
async def assess(
    body: AiAssessRequest,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
    client: ai_service.CompletionClient = Depends(get_ai_client),
):
    draft = await ai_service.generate_ai_assessment(session, actor, client, body.project_id, body.educator_feedback)
    return {"success": True, "id": draft["assessment_id"], "data": draft}


@router.post("/usage", name="ai.log_usage")
def log_usage(body: AiUsageCreate, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    usage_id = ai_service.log_ai_usage(
        session, actor, body.user_id, body.feature, body.project_id, body.prompt, body.response
    )
    return {"success": True, "id": usage_id}
