from pblab.extensions import db
from pblab.utils import new_id, utcnow


class Team(db.Model):
    __tablename__ = "teams"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    name = db.Column(db.String(200), nullable=False)
    course_id = db.Column(db.String(36), db.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    course = db.relationship("Course", back_populates="teams")
    memberships = db.relationship("TeamMembership", back_populates="team", cascade="all, delete-orphan")
    projects = db.relationship("Project", back_populates="team", cascade="all, delete-orphan")

    __table_args__ = (
        db.UniqueConstraint("course_id", "name", name="uq_team_course_name"),
        db.Index("ix_team_course_id", "course_id"),
    )

    @property
    def member_ids(self) -> set[str]:
        return {m.user_id for m in self.memberships}


class TeamMembership(db.Model):
    __tablename__ = "teams_users"
    team_id = db.Column(db.String(36), db.ForeignKey("teams.id", ondelete="CASCADE"), primary_key=True)
    user_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)
    joined_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    team = db.relationship("Team", back_populates="memberships")
    user = db.relationship("User", back_populates="memberships")
