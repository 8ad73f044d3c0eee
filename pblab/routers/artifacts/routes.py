from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pblab.dependencies import get_db, require_user
from pblab.schemas.artifact import ArtifactCreate, CommentCreate
from pblab.services.artifacts import create_artifact, delete_artifact, list_artifact_comments, list_project_artifacts
from pblab.services.file_validation import get_allowed_file_types
from pblab.services.identity import Actor
from pblab.services.notifications import create_comment

router = APIRouter(prefix="/artifacts", tags=["artifacts"])


@router.get("/allowed-types", name="artifacts.allowed_types")
def allowed_types():
    return {"success": True, "data": get_allowed_file_types()}


@router.post("", name="artifacts.create")
def create(body: ArtifactCreate, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    artifact_id = create_artifact(
        session, actor, body.project_id, body.title, body.url, body.type, body.mime_type, body.file_name
    )
    return {"success": True, "id": artifact_id}


@router.get("/project/{project_id}", name="artifacts.for_project")
def for_project(project_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": list_project_artifacts(session, actor, project_id)}


@router.delete("/{artifact_id}", name="artifacts.delete")
def delete(artifact_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    delete_artifact(session, actor, artifact_id)
    return {"success": True, "message": "Artifact deleted"}


@router.get("/{artifact_id}/comments", name="artifacts.comments")
def comments(artifact_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": list_artifact_comments(session, actor, artifact_id)}


@router.post("/{artifact_id}/comments", name="artifacts.add_comment")
def add_comment(
    artifact_id: str,
    body: CommentCreate,
    actor: Actor = Depends(require_user),
    session: Session = Depends(get_db),
):
    comment_id = create_comment(session, actor, artifact_id, body.body, body.mentioned_user_ids)
    return {"success": True, "id": comment_id}
