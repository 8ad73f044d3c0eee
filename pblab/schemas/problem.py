from typing import List, Optional

from pydantic import BaseModel, Field


class CriterionIn(BaseModel):
    criterion_text: str
    sort_order: int
    max_score: Optional[int] = None


class RubricIn(BaseModel):
    name: str
    criteria: List[CriterionIn] = Field(default_factory=list)


class TeamIn(BaseModel):
    name: str
    student_ids: List[str] = Field(default_factory=list)


class ProblemCreate(BaseModel):
    title: str
    course_id: str
    rubric: Optional[RubricIn] = None
    description: Optional[str] = None
    teams: List[TeamIn] = Field(default_factory=list)
