from typing import Optional

from pydantic import BaseModel


class ProjectCreate(BaseModel):
    problem_id: str
    team_id: str


class PhaseUpdate(BaseModel):
    new_phase: str


class ReportUpdate(BaseModel):
    report_url: str
    report_content: Optional[str] = None


class LearningGoalsUpdate(BaseModel):
    goals: Optional[str] = None
