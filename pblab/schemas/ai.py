from typing import Any, Optional

from pydantic import BaseModel


class ProjectRef(BaseModel):
    project_id: str


class TutorRequest(BaseModel):
    project_id: str
    message: str


class AiAssessRequest(BaseModel):
    project_id: str
    educator_feedback: Optional[str] = None


class AiUsageCreate(BaseModel):
    user_id: str
    feature: str
    project_id: Optional[str] = None
    prompt: Optional[Any] = None
    response: Optional[Any] = None
