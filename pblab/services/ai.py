"""
Generative-AI assistance: learning-goal suggestions, the team tutor and draft
rubric assessments.

The model sits behind an opaque completion endpoint taking ``{prompt, context}``
and answering ``{text}``. Every call, failed or not, is recorded in AiUsage.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from pblab.config import settings
from pblab.errors import (
    AuthorizationError,
    BusinessLogicError,
    ConfigurationError,
    DatabaseError,
    ExternalServiceError,
)
from pblab.extensions import transaction
from pblab.models import AiUsage, Assessment, AssessmentScore, AssessmentStatus, Project, ProjectPhase
from pblab.permissions import Capability, require_capability
from pblab.services.access import can_manage_course, load_project, verify_project_access
from pblab.services.assessments import rubric_criteria
from pblab.services.identity import Actor
from pblab.validation import optional_string, required_id, required_string

log = logging.getLogger(__name__)

FEATURE_SUGGEST_GOALS = "suggest_goals"
FEATURE_TUTOR = "tutor"
FEATURE_ASSESSMENT = "assessment"

TUTOR_MESSAGE_MAX_LENGTH = 4000

DEFAULT_LEARNING_GOALS = (
    "Develop critical thinking skills related to the problem domain",
    "Apply research methods to gather and analyze relevant information",
    "Collaborate effectively with team members to solve complex problems",
    "Communicate findings clearly through written and oral presentations",
)

TUTOR_INSTRUCTION = (
    "You are an AI tutoring assistant for Problem-Based Learning (PBL). Guide students through "
    "their learning process without giving direct answers. Ask probing questions, offer hints "
    "rather than solutions and encourage research and collaboration. This is a shared "
    "conversation for the whole project team."
)


class CompletionClient:
    """Thin async client for the completion endpoint."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        model: str = settings.AI_MODEL,
        timeout: float = settings.AI_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.transport = transport

    async def complete(self, prompt: str, context: Optional[dict[str, Any]] = None, operation: str = "complete") -> str:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        body = {"prompt": prompt, "context": {"model": self.model, **(context or {})}}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                upstream = await client.post(self.base_url, json=body, headers=headers)
                upstream.raise_for_status()
                data = upstream.json()
        except httpx.TimeoutException as exc:
            raise ExternalServiceError("ai", operation, "timed out") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise ExternalServiceError("ai", operation, f"upstream returned {status}", status) from exc
        except httpx.HTTPError as exc:
            raise ExternalServiceError("ai", operation, f"request failed: {exc}") from exc
        except ValueError as exc:
            raise ExternalServiceError("ai", operation, "response was not JSON") from exc

        text = data.get("text") if isinstance(data, dict) else None
        if not isinstance(text, str) or not text.strip():
            raise ExternalServiceError("ai", operation, "response contained no text")
        return text


def get_completion_client() -> CompletionClient:
    if not settings.AI_API_URL:
        raise ConfigurationError("AI_API_URL", "is not set")
    return CompletionClient(settings.AI_API_URL, settings.AI_API_KEY)


def log_ai_usage(
    session: Session,
    actor: Actor,
    user_id: str,
    feature: str,
    project_id: Optional[str] = None,
    prompt: Optional[Any] = None,
    response: Optional[Any] = None,
) -> str:
    """Append one audit row. Users may only log usage for themselves."""
    user_id = required_id(user_id, "User ID")
    feature = required_string(feature, "Feature", 50)
    if user_id != actor.id:
        raise AuthorizationError("log_ai_usage", "cannot log AI usage for another user", actor.role)

    usage = AiUsage(user_id=user_id, project_id=project_id, feature=feature, prompt=prompt, response=response)
    session.add(usage)
    try:
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        raise DatabaseError("log_ai_usage", str(exc), exc, {"feature": feature}) from exc
    return usage.id


def _record(session: Session, actor: Actor, project_id: str, feature: str, prompt: Any, response: Any) -> None:
    # audit failures are logged, not raised
    try:
        log_ai_usage(session, actor, actor.id, feature, project_id, prompt, response)
    except DatabaseError:
        log.exception("Failed to log AI usage for %s on project %s", feature, project_id)


async def _call(
    client: CompletionClient,
    session: Session,
    actor: Actor,
    project_id: str,
    feature: str,
    prompt: str,
    context: dict[str, Any],
    audit_prompt: dict[str, Any],
) -> str:
    try:
        return await client.complete(prompt, context, operation=feature)
    except ExternalServiceError as exc:
        log.warning("AI %s failed for project %s: %s", feature, project_id, exc)
        _record(session, actor, project_id, feature, audit_prompt, {"error": str(exc)})
        raise


def parse_learning_goals(text: str) -> list[str]:
    goals: Optional[list[str]] = None
    match = re.search(r"\[[\s\S]*\]", text)
    if match:
        try:
            data = json.loads(match.group(0))
        except ValueError:
            data = None
        if isinstance(data, list):
            goals = [item for item in data if isinstance(item, str)]
    if goals is None:
        goals = []
        for line in text.splitlines():
            line = line.strip()
            if not line or line.startswith("[") or line.startswith("]"):
                continue
            line = re.sub(r"^[\"'`\-*]*\s*", "", line)
            line = re.sub(r"[\"'`,]*\s*$", "", line)
            if len(line) > 10:
                goals.append(line)

    cleaned = []
    for goal in goals:
        goal = re.sub(r"^\d+\.\s*", "", goal)
        goal = goal.strip().strip("\"'`").strip()
        if goal:
            cleaned.append(goal)
    return cleaned[:5] or list(DEFAULT_LEARNING_GOALS)


async def suggest_learning_goals(
    session: Session, actor: Actor, client: CompletionClient, project_id: str
) -> list[str]:
    require_capability(actor.role, Capability.USE_AI, "suggest_learning_goals")
    project = verify_project_access(session, required_id(project_id, "Project ID"), actor)
    problem = project.problem

    prompt = (
        "As an educational AI assistant for Problem-Based Learning (PBL), help students define "
        "learning goals for their project.\n\n"
        f'Problem Title: "{problem.title}"\n\n'
        f"Problem Description:\n{problem.description or 'No detailed description provided.'}\n\n"
        "Generate 3-5 specific, measurable and achievable learning goals. "
        "Format your response as a JSON array of strings."
    )
    audit_prompt = {"problem_title": problem.title, "problem_description": problem.description}
    text = await _call(
        client, session, actor, project.id, FEATURE_SUGGEST_GOALS, prompt,
        {"temperature": 0.7, "response_format": "json"}, audit_prompt,
    )
    suggestions = parse_learning_goals(text)
    _record(session, actor, project.id, FEATURE_SUGGEST_GOALS, audit_prompt,
            {"suggestions": suggestions, "raw_response": text})
    return suggestions


def _tutor_history(session: Session, project_id: str) -> list[dict[str, str]]:
    rows = (
        session.query(AiUsage)
        .filter(AiUsage.project_id == project_id, AiUsage.feature == FEATURE_TUTOR)
        .order_by(AiUsage.created_at.asc())
        .all()
    )
    history = []
    for row in rows:
        prompt = row.prompt if isinstance(row.prompt, dict) else {}
        response = row.response if isinstance(row.response, dict) else {}
        if prompt.get("message"):
            history.append({"role": "user", "content": prompt["message"]})
        if response.get("text"):
            history.append({"role": "model", "content": response["text"]})
    return history


async def ai_tutor(
    session: Session, actor: Actor, client: CompletionClient, project_id: str, message: str
) -> str:
    """
    Answer a team member's question. The conversation is shared by the whole
    team: earlier tutor exchanges on the project are replayed as history.
    """
    require_capability(actor.role, Capability.USE_AI, "ai_tutor")
    message = required_string(message, "Message", TUTOR_MESSAGE_MAX_LENGTH)
    project = verify_project_access(session, required_id(project_id, "Project ID"), actor)

    history = _tutor_history(session, project.id)
    audit_prompt = {"message": message, "conversation_length": len(history) + 1}
    text = await _call(
        client, session, actor, project.id, FEATURE_TUTOR, message,
        {"system_instruction": TUTOR_INSTRUCTION, "history": history, "temperature": 0.7},
        audit_prompt,
    )
    _record(session, actor, project.id, FEATURE_TUTOR, audit_prompt, {"text": text})
    return text


def _assessment_prompt(project: Project, criteria: list, educator_feedback: Optional[str]) -> str:
    lines = [
        "You are an expert educator evaluating a student team's Problem-Based Learning project report.",
        f'Problem Title: "{project.problem.title}"',
        f"Problem Description:\n{project.problem.description or 'No description provided.'}",
        f"Student Report Content:\n{project.final_report_content}",
        "Score each rubric criterion with a whole number from 0 to its max score and justify the score.",
        "Rubric Criteria:",
    ]
    for index, c in enumerate(criteria, start=1):
        lines.append(f"{index}. {c.criterion_text} (Max Score: {c.max_score})\n   - ID: {c.id}")
    if educator_feedback:
        lines.append(f"Educator's Additional Guidance:\n{educator_feedback}")
    lines.append(
        'Respond with JSON: {"scores": [{"criterion_id": "...", "score": 0, "justification": "..."}], '
        '"overall_feedback": "..."}'
    )
    return "\n\n".join(lines)


def parse_ai_assessment(text: str, criteria: list) -> dict[str, Any]:
    """
    Clamp each score into 0..max_score, drop unknown criteria and give missing
    ones a zero. Raises ValueError when the reply is not an assessment at all.
    """
    data = json.loads(text)
    if not isinstance(data, dict) or not isinstance(data.get("scores"), list) or not data.get("overall_feedback"):
        raise ValueError("invalid assessment format")

    by_id = {c.id: c for c in criteria}
    scores: dict[str, dict[str, Any]] = {}
    for item in data["scores"]:
        if not isinstance(item, dict):
            continue
        criterion = by_id.get(item.get("criterion_id"))
        if criterion is None:
            log.warning("AI assessment referenced unknown criterion %r", item.get("criterion_id"))
            continue
        try:
            value = round(float(item.get("score", 0)))
        except (TypeError, ValueError, OverflowError):
            value = 0
        scores[criterion.id] = {
            "criterion_id": criterion.id,
            "score": max(0, min(value, criterion.max_score)),
            "justification": str(item.get("justification") or ""),
        }

    for criterion in criteria:
        scores.setdefault(criterion.id, {
            "criterion_id": criterion.id,
            "score": 0,
            "justification": "No assessment provided for this criterion.",
        })
    return {
        "scores": [scores[c.id] for c in criteria],
        "overall_feedback": str(data["overall_feedback"]),
    }


async def generate_ai_assessment(
    session: Session,
    actor: Actor,
    client: CompletionClient,
    project_id: str,
    educator_feedback: Optional[str] = None,
) -> dict[str, Any]:
    """Draft a ``pending_review`` assessment for an educator to review and finalize."""
    require_capability(actor.role, Capability.ASSESS_PROJECTS, "generate_ai_assessment")
    educator_feedback = optional_string(educator_feedback, "Educator feedback")
    project = load_project(session, required_id(project_id, "Project ID"))
    if not can_manage_course(actor, project.team.course):
        raise AuthorizationError("course_ownership_required", "not the course educator", actor.role)
    if project.phase != ProjectPhase.POST.value:
        raise BusinessLogicError("invalid_project_phase", "Project must be in post phase for assessment")
    if not project.final_report_content:
        raise BusinessLogicError(
            "missing_report_content",
            "No report content available for assessment. Please ensure the report has been properly submitted.",
        )
    criteria = sorted(rubric_criteria(project).values(), key=lambda c: c.sort_order)
    if not criteria:
        raise BusinessLogicError("missing_rubric", "No rubric criteria found for this problem")

    audit_prompt = {
        "problem_title": project.problem.title,
        "criteria_count": len(criteria),
        "report_length": len(project.final_report_content),
        "has_educator_feedback": bool(educator_feedback),
    }
    text = await _call(
        client, session, actor, project.id, FEATURE_ASSESSMENT,
        _assessment_prompt(project, criteria, educator_feedback),
        {"temperature": 0.3, "response_format": "json"}, audit_prompt,
    )
    try:
        draft = parse_ai_assessment(text, criteria)
    except ValueError as exc:
        _record(session, actor, project.id, FEATURE_ASSESSMENT, audit_prompt, {"error": str(exc), "raw_response": text})
        raise ExternalServiceError("ai", FEATURE_ASSESSMENT, f"unusable reply: {exc}") from exc

    try:
        with transaction(session, f"generate_ai_assessment project={project.id}", log):
            stale = (
                session.query(Assessment)
                .filter_by(project_id=project.id, status=AssessmentStatus.PENDING_REVIEW.value)
                .all()
            )
            for row in stale:
                session.delete(row)
            session.flush()

            assessment = Assessment(
                project_id=project.id,
                assessor_id=actor.id,
                status=AssessmentStatus.PENDING_REVIEW.value,
                overall_feedback=draft["overall_feedback"],
            )
            assessment.scores = [
                AssessmentScore(
                    criterion_id=s["criterion_id"],
                    score=s["score"],
                    justification=s["justification"],
                    ai_generated=True,
                )
                for s in draft["scores"]
            ]
            session.add(assessment)
    except SQLAlchemyError as exc:
        raise DatabaseError("generate_ai_assessment", str(exc), exc, {"project_id": project.id}) from exc

    _record(session, actor, project.id, FEATURE_ASSESSMENT, audit_prompt,
            {"assessment_id": assessment.id, "scores_count": len(draft["scores"])})
    return {"assessment_id": assessment.id, **draft}
