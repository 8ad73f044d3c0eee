from pblab.extensions import db
from pblab.utils import new_id, utcnow


class AiUsage(db.Model):
    """Append-only audit log of generative-AI calls. Rows are never updated."""

    __tablename__ = "ai_usage"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    project_id = db.Column(db.String(36), db.ForeignKey("projects.id", ondelete="SET NULL"), nullable=True)
    feature = db.Column(db.String(50), nullable=False)  # tutor|suggest_goals|assessment
    prompt = db.Column(db.JSON, nullable=True)
    response = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.Index("ix_ai_usage_user_id", "user_id"),
        db.Index("ix_ai_usage_created_at", "created_at"),
    )
