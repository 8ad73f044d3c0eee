"""
Role → capability table.

Call sites ask ``has_capability(role, Capability.X)`` instead of comparing role
strings, so adding a role or a capability only touches ``ROLE_CAPABILITIES``.
"""
import enum
from typing import FrozenSet, Mapping

from pblab.errors import AuthorizationError
from pblab.models.user import UserRole


class Capability(str, enum.Enum):
    ADVANCE_PHASE = "advance_phase"          # move a project forward by one phase
    SET_ANY_PHASE = "set_any_phase"          # arbitrary forward/backward transitions
    CLOSE_PROJECTS = "close_projects"
    MANAGE_PROJECTS = "manage_projects"      # problems, rubrics, projects, team invites
    ASSESS_PROJECTS = "assess_projects"
    OVERRIDE_ARTIFACTS = "override_artifacts"  # act on artifacts uploaded by others
    ACCESS_ALL_COURSES = "access_all_courses"
    ADMINISTER = "administer"                # users, courses, teams system-wide
    USE_AI = "use_ai"


_STUDENT = frozenset({Capability.ADVANCE_PHASE, Capability.USE_AI})
_EDUCATOR = _STUDENT | {
    Capability.SET_ANY_PHASE,
    Capability.CLOSE_PROJECTS,
    Capability.MANAGE_PROJECTS,
    Capability.ASSESS_PROJECTS,
    Capability.OVERRIDE_ARTIFACTS,
}
_ADMIN = frozenset(Capability)

ROLE_CAPABILITIES: Mapping[str, FrozenSet[Capability]] = {
    UserRole.STUDENT.value: _STUDENT,
    UserRole.EDUCATOR.value: frozenset(_EDUCATOR),
    UserRole.ADMIN.value: _ADMIN,
}


def capabilities_for(role: str) -> FrozenSet[Capability]:
    return ROLE_CAPABILITIES.get(role, frozenset())


def has_capability(role: str, capability: Capability) -> bool:
    return capability in capabilities_for(role)


def require_capability(role: str, capability: Capability, action: str) -> None:
    if not has_capability(role, capability):
        raise AuthorizationError(action, f"role lacks capability '{capability.value}'", role)
