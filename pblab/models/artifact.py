import enum

from pblab.extensions import db
from pblab.utils import new_id, utcnow


class ArtifactType(str, enum.Enum):
    DOC = "doc"
    IMAGE = "image"
    VIDEO = "video"
    LINK = "link"


class Artifact(db.Model):
    __tablename__ = "artifacts"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    project_id = db.Column(db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    uploader_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(2048), nullable=False)
    type = db.Column(db.String(10), nullable=False)  # doc|image|video|link
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    project = db.relationship("Project", back_populates="artifacts")
    uploader = db.relationship("User")
    comments = db.relationship(
        "Comment", back_populates="artifact", cascade="all, delete-orphan", order_by="Comment.created_at"
    )

    __table_args__ = (
        db.CheckConstraint("type IN ('doc', 'image', 'video', 'link')", name="ck_artifact_type"),
        db.Index("ix_artifact_project_id", "project_id"),
    )


class Comment(db.Model):
    __tablename__ = "comments"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    artifact_id = db.Column(db.String(36), db.ForeignKey("artifacts.id", ondelete="CASCADE"), nullable=False)
    author_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    body = db.Column(db.Text, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    artifact = db.relationship("Artifact", back_populates="comments")
    author = db.relationship("User")

    __table_args__ = (
        db.Index("ix_comment_artifact_id", "artifact_id"),
    )
