import enum

from pblab.extensions import db
from pblab.security import hash_password, verify_password
from pblab.utils import new_id, utcnow


class UserRole(str, enum.Enum):
    STUDENT = "student"
    EDUCATOR = "educator"
    ADMIN = "admin"


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_id)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    name = db.Column(db.String(200), nullable=True)
    role = db.Column(db.String(20), nullable=False, default=UserRole.STUDENT.value)  # student|educator|admin
    password_hash = db.Column(db.String(255), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    __table_args__ = (
        db.CheckConstraint("role IN ('student', 'educator', 'admin')", name="ck_user_role"),
    )

    memberships = db.relationship("TeamMembership", back_populates="user", cascade="all, delete-orphan")

    def set_password(self, password: str):
        self.password_hash = hash_password(password)

    def check_password(self, password: str) -> bool:
        if not self.password_hash:
            return False
        return verify_password(password, self.password_hash)

    @property
    def display_name(self) -> str:
        return self.name or self.email

    def __repr__(self):
        return f"<User id={self.id} {self.email} role={self.role}>"
