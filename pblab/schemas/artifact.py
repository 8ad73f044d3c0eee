from typing import List, Optional

from pydantic import BaseModel, Field


class ArtifactCreate(BaseModel):
    project_id: str
    title: str
    url: str
    type: str
    mime_type: Optional[str] = None
    file_name: Optional[str] = None


class CommentCreate(BaseModel):
    body: str
    mentioned_user_ids: List[str] = Field(default_factory=list)
