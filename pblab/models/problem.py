from pblab.extensions import db
from pblab.utils import new_id, utcnow


class Problem(db.Model):
    __tablename__ = "problems"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    title = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    creator_id = db.Column(db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    course_id = db.Column(db.String(36), db.ForeignKey("courses.id", ondelete="CASCADE"), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    creator = db.relationship("User")
    course = db.relationship("Course", back_populates="problems")
    rubric = db.relationship("Rubric", back_populates="problem", uselist=False, cascade="all, delete-orphan")
    projects = db.relationship("Project", back_populates="problem", cascade="all, delete-orphan")

    __table_args__ = (
        db.Index("ix_problem_course_id", "course_id"),
    )


class Rubric(db.Model):
    __tablename__ = "rubrics"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    problem_id = db.Column(
        db.String(36), db.ForeignKey("problems.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    name = db.Column(db.String(255), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    problem = db.relationship("Problem", back_populates="rubric")
    criteria = db.relationship(
        "RubricCriterion",
        back_populates="rubric",
        cascade="all, delete-orphan",
        order_by="RubricCriterion.sort_order",
    )


class RubricCriterion(db.Model):
    __tablename__ = "rubric_criteria"
    id = db.Column(db.String(36), primary_key=True, default=new_id)
    rubric_id = db.Column(db.String(36), db.ForeignKey("rubrics.id", ondelete="CASCADE"), nullable=False)
    criterion_text = db.Column(db.Text, nullable=False)
    max_score = db.Column(db.Integer, nullable=False, default=5)
    sort_order = db.Column(db.Integer, nullable=False, default=0)

    rubric = db.relationship("Rubric", back_populates="criteria")

    __table_args__ = (
        db.CheckConstraint("max_score >= 1 AND max_score <= 10", name="ck_criterion_max_score"),
        db.CheckConstraint("sort_order >= 0", name="ck_criterion_sort_order"),
        db.Index("ix_criterion_rubric_id", "rubric_id"),
    )
