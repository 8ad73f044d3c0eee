import pytest

from conftest import actor, set_phase
from pblab.errors import AuthorizationError, BusinessLogicError, NotFoundError, ValidationError
from pblab.models import Assessment, AssessmentScore, Project, ProjectPhase
from pblab.services.assessments import (
    can_assess_project,
    finalize_assessment,
    get_project_assessment_results,
)
from pblab.services.projects import update_project_phase


@pytest.fixture(name="post_project")
def post_project_fixture(session, world):
    set_phase(session, world.project, ProjectPhase.POST)
    return world.project


def _scores(world, research=4, model=8):
    return [
        {"criterion_id": world.research.id, "score": research, "justification": "Solid sources"},
        {"criterion_id": world.model.id, "score": model},
    ]


def test_finalize_closes_project(session, world, post_project):
    assessment_id = finalize_assessment(
        session, actor(world.educator), post_project.id, _scores(world), "Well done"
    )

    assert session.get(Project, post_project.id).phase == "closed"
    assessment = session.get(Assessment, assessment_id)
    assert assessment.status == "final"
    assert assessment.assessor_id == world.educator.id
    assert assessment.overall_feedback == "Well done"
    by_criterion = {s.criterion_id: s for s in assessment.scores}
    assert by_criterion[world.research.id].score == 4
    assert by_criterion[world.model.id].score == 8
    assert not any(s.ai_generated for s in assessment.scores)


def test_admin_may_finalize_any_course(session, world, post_project):
    finalize_assessment(session, actor(world.admin), post_project.id, _scores(world))
    assert session.get(Project, post_project.id).phase == "closed"


@pytest.mark.parametrize("research,model", [(6, 8), (4, 11), (-1, 3)])
def test_out_of_range_score_writes_nothing(session, world, post_project, research, model):
    with pytest.raises(BusinessLogicError) as excinfo:
        finalize_assessment(session, actor(world.educator), post_project.id, _scores(world, research, model))
    assert excinfo.value.rule == "score_out_of_range"
    assert session.get(Project, post_project.id).phase == "post"
    assert session.query(Assessment).count() == 0
    assert session.query(AssessmentScore).count() == 0


def test_boundary_scores_are_accepted(session, world, post_project):
    finalize_assessment(session, actor(world.educator), post_project.id, _scores(world, 0, 10))
    assert session.get(Project, post_project.id).phase == "closed"


def test_unknown_criterion_is_rejected(session, world, post_project):
    scores = _scores(world) + [{"criterion_id": "not-in-rubric", "score": 1}]
    with pytest.raises(BusinessLogicError) as excinfo:
        finalize_assessment(session, actor(world.educator), post_project.id, scores)
    assert excinfo.value.rule == "invalid_criterion"
    assert session.query(Assessment).count() == 0


def test_score_shape_is_validated(session, world, post_project):
    with pytest.raises(ValidationError):
        finalize_assessment(session, actor(world.educator), post_project.id, [])
    with pytest.raises(ValidationError):
        finalize_assessment(
            session, actor(world.educator), post_project.id,
            [{"criterion_id": world.model.id, "score": 1}, {"criterion_id": world.model.id, "score": 2}],
        )
    with pytest.raises(ValidationError):
        finalize_assessment(
            session, actor(world.educator), post_project.id, [{"criterion_id": world.model.id, "score": "7"}]
        )


@pytest.mark.parametrize("phase", [ProjectPhase.PRE, ProjectPhase.RESEARCH, ProjectPhase.CLOSED])
def test_finalize_requires_post_phase(session, world, phase):
    set_phase(session, world.project, phase)
    with pytest.raises(BusinessLogicError) as excinfo:
        finalize_assessment(session, actor(world.educator), world.project.id, _scores(world))
    assert excinfo.value.rule == "invalid_project_phase"
    assert session.get(Project, world.project.id).phase == phase.value


def test_student_cannot_finalize(session, world, post_project):
    with pytest.raises(AuthorizationError):
        finalize_assessment(session, actor(world.s1), post_project.id, _scores(world))


def test_other_course_educator_cannot_finalize(session, world, post_project):
    with pytest.raises(AuthorizationError):
        finalize_assessment(session, actor(world.other_educator), post_project.id, _scores(world))
    assert session.get(Project, post_project.id).phase == "post"


def test_finalize_replaces_pending_draft(session, world, post_project):
    draft = Assessment(project_id=post_project.id, assessor_id=world.educator.id, status="pending_review")
    draft.scores = [
        AssessmentScore(criterion_id=world.research.id, score=2, justification="AI draft", ai_generated=True),
        AssessmentScore(criterion_id=world.model.id, score=3, justification="AI draft", ai_generated=True),
    ]
    session.add(draft)
    session.commit()
    draft_id = draft.id

    assessment_id = finalize_assessment(session, actor(world.educator), post_project.id, _scores(world, 5, 9))

    assert assessment_id == draft_id
    assert session.query(Assessment).count() == 1
    assessment = session.get(Assessment, assessment_id)
    assert assessment.status == "final"
    assert sorted(s.score for s in assessment.scores) == [5, 9]
    assert session.query(AssessmentScore).count() == 2
    assert not any(s.ai_generated for s in assessment.scores)


def test_results_after_finalize(session, world, post_project):
    finalize_assessment(session, actor(world.educator), post_project.id, _scores(world), "Great teamwork")

    results = get_project_assessment_results(session, actor(world.s2), post_project.id)
    assert [r["criterion"]["criterion_text"] for r in results["rubric_results"]] == ["Model design", "Research quality"]
    assert [r["score"] for r in results["rubric_results"]] == [8, 4]
    assert results["assessment"]["assessor_name"] == "Terry Teacher"
    assert results["assessment"]["overall_feedback"] == "Great teamwork"
    assert results["project"]["phase"] == "closed"


def test_results_need_closed_project(session, world, post_project):
    with pytest.raises(BusinessLogicError):
        get_project_assessment_results(session, actor(world.s1), post_project.id)


def test_results_hidden_from_outsiders(session, world, post_project):
    finalize_assessment(session, actor(world.educator), post_project.id, _scores(world))
    with pytest.raises(AuthorizationError):
        get_project_assessment_results(session, actor(world.outsider), post_project.id)


def test_closed_without_assessment_has_no_results(session, world):
    set_phase(session, world.project, ProjectPhase.CLOSED)
    with pytest.raises(NotFoundError):
        get_project_assessment_results(session, actor(world.educator), world.project.id)


def test_can_assess_project(session, world):
    assert can_assess_project(session, actor(world.s1), world.project.id)["reason"] == "Educator or admin role required"
    assert can_assess_project(session, actor(world.educator), "missing")["reason"] == "Project not found"
    assert can_assess_project(session, actor(world.educator), world.project.id)["reason"] == "Project must be in post phase"

    set_phase(session, world.project, ProjectPhase.POST)
    assert can_assess_project(session, actor(world.other_educator), world.project.id)["reason"] == "Not your course"
    assert can_assess_project(session, actor(world.educator), world.project.id) == {"can_assess": True, "reason": None}


def test_refinalizing_after_reopen_replaces_scores(session, world, post_project):
    first_id = finalize_assessment(session, actor(world.educator), post_project.id, _scores(world, 2, 3))
    update_project_phase(session, actor(world.educator), post_project.id, "post")

    second_id = finalize_assessment(session, actor(world.educator), post_project.id, _scores(world, 5, 10), "Revised")

    assert second_id == first_id
    assert session.query(Assessment).count() == 1
    rows = session.query(AssessmentScore).all()
    assert sorted(s.score for s in rows) == [5, 10]
    assert session.get(Assessment, second_id).overall_feedback == "Revised"
    assert session.get(Project, post_project.id).phase == "closed"
