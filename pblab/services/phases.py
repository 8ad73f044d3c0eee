"""
Project phase state machine: pre -> research -> post -> closed.

Team members may only move one step forward. Roles with SET_ANY_PHASE may jump
in either direction. Entering ``closed`` always requires CLOSE_PROJECTS.
"""
from typing import Optional

from pblab.errors import BusinessLogicError, ValidationError
from pblab.models.project import PHASE_ORDER, ProjectPhase
from pblab.permissions import Capability, has_capability, require_capability
from pblab.services.access import require_project_close_permissions


def parse_phase(value: str) -> ProjectPhase:
    try:
        return ProjectPhase(value)
    except ValueError:
        allowed = ", ".join(p.value for p in PHASE_ORDER)
        raise ValidationError("New phase", f"must be one of: {allowed}", value) from None


def next_phase(current: str) -> Optional[ProjectPhase]:
    index = PHASE_ORDER.index(parse_phase(current))
    if index + 1 < len(PHASE_ORDER):
        return PHASE_ORDER[index + 1]
    return None


def check_phase_transition(role: str, current: str, target: str) -> ProjectPhase:
    """Raise if ``role`` may not move a project from ``current`` to ``target``; return the target phase."""
    current_phase = parse_phase(current)
    target_phase = parse_phase(target)

    if target_phase is ProjectPhase.CLOSED:
        require_project_close_permissions(role)

    if has_capability(role, Capability.SET_ANY_PHASE):
        return target_phase

    require_capability(role, Capability.ADVANCE_PHASE, "advance_phase")
    if PHASE_ORDER.index(target_phase) <= PHASE_ORDER.index(current_phase):
        raise BusinessLogicError(
            "phase_not_forward",
            "Students can only advance to the next phase in the workflow",
            {"current": current_phase.value, "target": target_phase.value},
        )
    if target_phase is not next_phase(current_phase.value):
        raise BusinessLogicError(
            "phase_skip",
            "Cannot skip phases. Please advance one phase at a time.",
            {"current": current_phase.value, "target": target_phase.value},
        )
    return target_phase


def report_submission_phase(current: str) -> str:
    """Attaching a final report while in research moves the project to post."""
    if current == ProjectPhase.RESEARCH.value:
        return ProjectPhase.POST.value
    return current
