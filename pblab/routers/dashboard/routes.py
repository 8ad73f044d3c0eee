from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from pblab.dependencies import get_db, require_user
from pblab.services.dashboard import get_dashboard
from pblab.services.identity import Actor

router = APIRouter(prefix="/dashboard", tags=["dashboard"])


@router.get("", name="dashboard.index")
def index(actor: Actor = Depends(require_user), session: Session = Depends(get_db)):
    """Role-specific landing data: a student's teams and projects, an educator's courses, or system counts."""
    return {"success": True, "data": get_dashboard(session, actor)}
