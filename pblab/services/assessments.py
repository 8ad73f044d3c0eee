"""
Rubric assessment of projects.

``finalize_assessment`` is the normal way a project reaches ``closed``: it
validates a full score-set against the project's rubric, writes the final
assessment and closes the project in a single transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pblab.errors import AuthorizationError, BusinessLogicError, DatabaseError, NotFoundError, ValidationError
from pblab.extensions import transaction
from pblab.models import (
    Assessment,
    AssessmentScore,
    AssessmentStatus,
    Project,
    ProjectPhase,
    RubricCriterion,
)
from pblab.permissions import Capability, has_capability, require_capability
from pblab.services.access import can_manage_course, load_project, verify_project_access
from pblab.services.identity import Actor
from pblab.validation import optional_string, required_id

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScoreInput:
    criterion_id: str
    score: int
    justification: Optional[str] = None


def parse_scores(scores: Optional[Iterable[Mapping[str, Any]]]) -> list[ScoreInput]:
    """Shape checks only; rubric membership and bounds are checked against the project later."""
    items = list(scores or [])
    if not items:
        raise ValidationError("Scores", "must contain at least one score")

    parsed: list[ScoreInput] = []
    seen: set[str] = set()
    for index, item in enumerate(items, start=1):
        criterion_id = required_id(item.get("criterion_id"), f"Score {index} criterion ID")
        if criterion_id in seen:
            raise ValidationError(f"Score {index} criterion ID", "is duplicated", criterion_id)
        seen.add(criterion_id)

        value = item.get("score")
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationError(f"Score {index}", "must be a whole number", value)
        justification = optional_string(item.get("justification"), f"Score {index} justification")
        parsed.append(ScoreInput(criterion_id, value, justification))
    return parsed


def rubric_criteria(project: Project) -> dict[str, RubricCriterion]:
    rubric = project.problem.rubric
    if rubric is None:
        return {}
    return {c.id: c for c in rubric.criteria}


def check_scores_against_rubric(scores: list[ScoreInput], criteria: Mapping[str, RubricCriterion]) -> None:
    """All-or-nothing: the first bad score rejects the whole batch."""
    for index, item in enumerate(scores, start=1):
        criterion = criteria.get(item.criterion_id)
        if criterion is None:
            raise BusinessLogicError(
                "invalid_criterion",
                f"Score {index}: Criterion not found in project rubric",
                {"criterion_id": item.criterion_id},
            )
        if item.score < 0 or item.score > criterion.max_score:
            raise BusinessLogicError(
                "score_out_of_range",
                f"Score {index}: Score must be between 0 and {criterion.max_score}",
                {"score": item.score, "max_score": criterion.max_score, "criterion_id": criterion.id},
            )


def existing_assessment(session: Session, project_id: str) -> Optional[Assessment]:
    """Pending review first, otherwise the final one. Finalizing keeps only this row for the project."""
    rows = (
        session.query(Assessment)
        .filter(Assessment.project_id == project_id)
        .order_by(Assessment.updated_at.desc())
        .all()
    )
    for status in (AssessmentStatus.PENDING_REVIEW.value, AssessmentStatus.FINAL.value):
        for row in rows:
            if row.status == status:
                return row
    return None


def _require_assessor(session: Session, actor: Actor, project_id: str) -> Project:
    require_capability(actor.role, Capability.ASSESS_PROJECTS, "assess_project")
    project = load_project(session, project_id)
    if not can_manage_course(actor, project.team.course):
        raise AuthorizationError(
            "course_ownership_required",
            "educator can only assess projects in their own courses",
            actor.role,
            {"project_id": project_id},
        )
    return project


def finalize_assessment(
    session: Session,
    actor: Actor,
    project_id: str,
    scores: Iterable[Mapping[str, Any]],
    overall_feedback: Optional[str] = None,
) -> str:
    """Write the final rubric scores and close the project. Returns the assessment id."""
    project_id = required_id(project_id, "Project ID")
    parsed = parse_scores(scores)
    feedback = optional_string(overall_feedback, "Overall feedback")

    project = _require_assessor(session, actor, project_id)
    if project.phase != ProjectPhase.POST.value:
        raise BusinessLogicError(
            "invalid_project_phase",
            "Assessments can only be finalized for projects in the post phase. "
            "The project must have a submitted final report.",
            {"current_phase": project.phase},
        )
    check_scores_against_rubric(parsed, rubric_criteria(project))

    try:
        with transaction(session, f"finalize_assessment project={project_id}", log):
            assessment = existing_assessment(session, project.id)
            others = session.query(Assessment).filter(Assessment.project_id == project.id)
            if assessment is not None:
                others = others.filter(Assessment.id != assessment.id)
            for row in others.all():
                session.delete(row)

            if assessment is None:
                assessment = Assessment(project_id=project.id)
                session.add(assessment)
            else:
                # old rows must be gone before the new set hits the (assessment, criterion) constraint
                assessment.scores.clear()
                session.flush()

            assessment.status = AssessmentStatus.FINAL.value
            assessment.assessor_id = actor.id
            assessment.overall_feedback = feedback
            for item in parsed:
                assessment.scores.append(
                    AssessmentScore(
                        criterion_id=item.criterion_id,
                        score=item.score,
                        justification=item.justification,
                        ai_generated=False,
                    )
                )
            project.phase = ProjectPhase.CLOSED.value
    except SQLAlchemyError as exc:
        raise DatabaseError("finalize_assessment", str(exc), exc, {"project_id": project_id}) from exc

    log.info("Assessment %s finalized for project %s by %s", assessment.id, project_id, actor.id)
    return assessment.id


def can_assess_project(session: Session, actor: Actor, project_id: str) -> dict[str, Any]:
    if not has_capability(actor.role, Capability.ASSESS_PROJECTS):
        return {"can_assess": False, "reason": "Educator or admin role required"}
    project = session.get(Project, project_id)
    if project is None:
        return {"can_assess": False, "reason": "Project not found"}
    if project.phase != ProjectPhase.POST.value:
        return {"can_assess": False, "reason": "Project must be in post phase"}
    if not can_manage_course(actor, project.team.course):
        return {"can_assess": False, "reason": "Not your course"}
    return {"can_assess": True, "reason": None}


def get_project_assessment_results(session: Session, actor: Actor, project_id: str) -> dict[str, Any]:
    project = verify_project_access(session, required_id(project_id, "Project ID"), actor)
    if project.phase != ProjectPhase.CLOSED.value:
        raise BusinessLogicError(
            "project_not_closed",
            "Assessment results are only available for closed projects",
            {"current_phase": project.phase},
        )

    assessment = (
        session.query(Assessment)
        .filter(Assessment.project_id == project.id, Assessment.status == AssessmentStatus.FINAL.value)
        .order_by(Assessment.updated_at.desc())
        .first()
    )
    if assessment is None:
        raise NotFoundError("Assessment")

    by_criterion = {s.criterion_id: s for s in assessment.scores}
    criteria = sorted(rubric_criteria(project).values(), key=lambda c: c.sort_order)
    results = []
    for criterion in criteria:
        score = by_criterion.get(criterion.id)
        results.append({
            "criterion": {
                "id": criterion.id,
                "criterion_text": criterion.criterion_text,
                "max_score": criterion.max_score,
                "sort_order": criterion.sort_order,
            },
            "score": score.score if score else None,
            "justification": score.justification if score else None,
        })

    return {
        "project": {
            "id": project.id,
            "phase": project.phase,
            "final_report_url": project.final_report_url,
            "problem_title": project.problem.title,
        },
        "rubric_results": results,
        "assessment": {
            "id": assessment.id,
            "assessor_name": assessment.assessor.display_name if assessment.assessor else None,
            "overall_feedback": assessment.overall_feedback,
            "status": assessment.status,
            "created_at": assessment.created_at,
        },
    }
