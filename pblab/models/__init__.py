# Re-export models so external code can keep using: from pblab.models import User, Project, ...
from .user import User, UserRole
from .course import Course
from .team import Team, TeamMembership
from .problem import Problem, Rubric, RubricCriterion
from .project import Project, ProjectPhase, PHASE_ORDER
from .artifact import Artifact, ArtifactType, Comment
from .notification import Notification, NotificationType
from .assessment import Assessment, AssessmentScore, AssessmentStatus
from .ai_usage import AiUsage

__all__ = [
    # people & structure
    "User", "UserRole", "Course", "Team", "TeamMembership",
    # problems & projects
    "Problem", "Rubric", "RubricCriterion", "Project", "ProjectPhase", "PHASE_ORDER",
    # collaboration
    "Artifact", "ArtifactType", "Comment", "Notification", "NotificationType",
    # assessment & audit
    "Assessment", "AssessmentScore", "AssessmentStatus", "AiUsage",
]
