from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pblab.dependencies import get_db, require_user
from pblab.schemas.problem import ProblemCreate
from pblab.services.identity import Actor
from pblab.services.problems import create_problem, default_rubric_template, get_students_in_course

router = APIRouter(prefix="/problems", tags=["problems"])


@router.post("", name="problems.create")
def create(body: ProblemCreate, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    """Creates a problem with its rubric and, optionally, teams with projects and invite links."""
    result = create_problem(
        session,
        actor,
        body.title,
        body.course_id,
        body.rubric.model_dump() if body.rubric else None,
        description=body.description,
        teams=[team.model_dump() for team in body.teams],
    )
    return {"success": True, "id": result["problem_id"], "data": {"invites": result["invites"]}}


@router.get("/courses/{course_id}/students", name="problems.course_students")
def course_students(course_id: str, actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    return {"success": True, "data": get_students_in_course(session, actor, course_id)}


@router.get("/rubric-template", name="problems.rubric_template")
def rubric_template(actor: Actor = Depends(require_user)):
    return {"success": True, "data": default_rubric_template()}
