import enum

from pblab.extensions import db
from pblab.utils import new_id, utcnow


class NotificationType(str, enum.Enum):
    MENTION_IN_COMMENT = "mention_in_comment"


class Notification(db.Model):
    __tablename__ = "notifications"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    recipient_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    actor_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = db.Column(db.String(40), nullable=False)
    reference_id = db.Column(db.String(36), nullable=False)
    reference_url = db.Column(db.String(2048), nullable=True)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    recipient = db.relationship("User", foreign_keys=[recipient_id])
    actor = db.relationship("User", foreign_keys=[actor_id])

    __table_args__ = (
        db.CheckConstraint("type IN ('mention_in_comment')", name="ck_notification_type"),
        db.Index("ix_notification_recipient_id", "recipient_id"),
        db.Index("ix_notification_created_at", "created_at"),
    )
