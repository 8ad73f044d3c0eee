from pblab.extensions import db
from pblab.utils import new_id, utcnow


class Course(db.Model):
    __tablename__ = "courses"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False, unique=True)
    # The educator who administers the course
    admin_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    admin = db.relationship("User")
    teams = db.relationship("Team", back_populates="course", cascade="all, delete-orphan")
    problems = db.relationship("Problem", back_populates="course", cascade="all, delete-orphan")

    __table_args__ = (
        db.Index("ix_course_admin_id", "admin_id"),
    )
