import enum

from pblab.extensions import db
from pblab.utils import new_id, utcnow


class ProjectPhase(str, enum.Enum):
    PRE = "pre"
    RESEARCH = "research"
    POST = "post"
    CLOSED = "closed"


PHASE_ORDER = [ProjectPhase.PRE, ProjectPhase.RESEARCH, ProjectPhase.POST, ProjectPhase.CLOSED]


class Project(db.Model):
    __tablename__ = "projects"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    problem_id = db.Column(db.String(36), db.ForeignKey("problems.id", ondelete="CASCADE"), nullable=False)
    team_id = db.Column(db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), nullable=False)
    phase = db.Column(db.String(20), nullable=False, default=ProjectPhase.PRE.value)
    learning_goals = db.Column(db.Text, nullable=True)
    final_report_url = db.Column(db.String(2048), nullable=True)
    # Plain text copy of the report, used for AI assessment
    final_report_content = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    problem = db.relationship("Problem", back_populates="projects")
    team = db.relationship("Team", back_populates="projects")
    artifacts = db.relationship("Artifact", back_populates="project", cascade="all, delete-orphan")
    assessments = db.relationship("Assessment", back_populates="project", cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint("problem_id", "team_id", name="uq_project_problem_team"),
        db.CheckConstraint("phase IN ('pre', 'research', 'post', 'closed')", name="ck_project_phase"),
        db.Index("ix_project_team_id", "team_id"),
    )

    @property
    def course_id(self) -> str:
        return self.team.course_id
