from typing import List, Optional

from pydantic import BaseModel


class ScoreIn(BaseModel):
    criterion_id: str
    score: int
    justification: Optional[str] = None


class AssessmentFinalize(BaseModel):
    scores: List[ScoreIn]
    overall_feedback: Optional[str] = None
