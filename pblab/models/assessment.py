import enum

from pblab.extensions import db
from pblab.utils import new_id, utcnow


class AssessmentStatus(str, enum.Enum):
    PENDING_REVIEW = "pending_review"
    FINAL = "final"


class Assessment(db.Model):
    __tablename__ = "assessments"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    project_id = db.Column(db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    assessor_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    status = db.Column(db.String(20), nullable=False, default=AssessmentStatus.PENDING_REVIEW.value)
    overall_feedback = db.Column(db.Text, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    project = db.relationship("Project", back_populates="assessments")
    assessor = db.relationship("User")
    scores = db.relationship("AssessmentScore", back_populates="assessment", cascade="all, delete-orphan")

    __table_args__ = (
        db.CheckConstraint("status IN ('pending_review', 'final')", name="ck_assessment_status"),
        db.Index("ix_assessment_project_id", "project_id"),
    )


class AssessmentScore(db.Model):
    __tablename__ = "assessment_scores"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    assessment_id = db.Column(
        db.String(36), db.ForeignKey("assessments.id", ondelete="CASCADE"), nullable=False
    )
    criterion_id = db.Column(
        db.String(36), db.ForeignKey("rubric_criteria.id", ondelete="CASCADE"), nullable=False
    )
    score = db.Column(db.Integer, nullable=False)
    justification = db.Column(db.Text, nullable=True)
    ai_generated = db.Column(db.Boolean, nullable=False, default=False)

    assessment = db.relationship("Assessment", back_populates="scores")
    criterion = db.relationship("RubricCriterion")

    __table_args__ = (
        db.UniqueConstraint("assessment_id", "criterion_id", name="uq_score_assessment_criterion"),
        db.CheckConstraint("score >= 0", name="ck_score_nonneg"),
    )
