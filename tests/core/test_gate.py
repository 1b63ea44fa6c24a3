from __future__ import annotations

import pytest
from sqlalchemy import func, select

from stagegate.core.gate import StageGate
from stagegate.core.matrix import ANSWER_SET_WEIGHTS, RESUME_WEIGHTS, compute_matrix
from stagegate.core.results import AnswerSetDetail, ResumeDetail, StageEvaluation
from stagegate.core.status import ApplicationStatus, StageStatus
from stagegate.db import Application, ResumeAnalysis, ScreeningStage
from stagegate.errors import GuardViolation, InvalidStageTransition


def resume_evaluation(skills: float, experience: float, education: float) -> StageEvaluation:
    return StageEvaluation(
        stage_number=1,
        matrix=compute_matrix(
            RESUME_WEIGHTS, {"skills": skills, "experience": experience, "education": education}
        ),
        detail=ResumeDetail(
            skills_match={"required": ["python"], "found": ["python"], "missing": []},
            experience_match={"required": "3 years", "found": "5 years", "match": True},
            strengths=["Skills: python"],
            concerns=[],
        ),
        summary="Strong backend profile.",
    )


def test_evaluation_at_threshold_passes(session_factory, seed):
    ids = seed()
    gate = StageGate()
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        stage = gate.begin_attempt(session, application, 1)
        outcome = gate.record_evaluation(session, application, stage, resume_evaluation(5, 5, 5))

        assert outcome.passed is True
        assert outcome.score == 5.0
        assert outcome.reason == "evaluated"
        assert application.status is ApplicationStatus.STAGE1_PASSED
        assert application.current_stage == 1
        assert application.overall_score == 5.0
        assert application.ai_summary == "Strong backend profile."
        assert stage.status is StageStatus.COMPLETED
        assert stage.completed_at is not None
        assert stage.ai_evaluation["overallScore"] == 5.0

        analysis = session.scalars(select(ResumeAnalysis)).one()
        assert analysis.screening_stage_id == stage.id
        assert analysis.fit_rating == "medium"
        assert analysis.concerns is None


def test_evaluation_below_threshold_fails(session_factory, seed):
    ids = seed()
    gate = StageGate(thresholds={1: 6.0})
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        stage = gate.begin_attempt(session, application, 1)
        assert stage.passing_threshold == 6.0
        outcome = gate.record_evaluation(session, application, stage, resume_evaluation(6, 6, 5))

        assert outcome.passed is False
        assert application.status is ApplicationStatus.STAGE1_FAILED
        assert application.overall_score == 5.75


def test_answer_set_weighted_score_passes_stage2(session_factory, seed):
    ids = seed(status="stage1_passed")
    gate = StageGate()
    evaluation = StageEvaluation(
        stage_number=2,
        matrix=compute_matrix(ANSWER_SET_WEIGHTS, {"relevance": 8, "clarity": 6, "role_fit": 7}),
        detail=AnswerSetDetail(answers=[]),
    )
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        stage = gate.begin_attempt(session, application, 2)
        outcome = gate.record_evaluation(session, application, stage, evaluation)

        assert outcome.score == 7.1
        assert application.status is ApplicationStatus.STAGE2_PASSED


def test_attempts_are_numbered_per_stage(session_factory, seed):
    ids = seed()
    gate = StageGate()
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        first = gate.begin_attempt(session, application, 1)
        gate.record_error(session, application, first)
        second = gate.begin_attempt(session, application, 1)
        other = gate.begin_attempt(session, application, 2, status=StageStatus.PENDING)

        assert (first.attempt, second.attempt, other.attempt) == (1, 2, 1)
        assert gate.current_attempt(session, application.id, 1).id == second.id
        assert other.status is StageStatus.PENDING
        assert other.started_at is None


def test_record_error_keeps_previous_overall_score(session_factory, seed):
    ids = seed(status="stage1_passed")
    gate = StageGate()
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        application.overall_score = 7.0
        stage = gate.begin_attempt(session, application, 2)
        outcome = gate.record_error(session, application, stage)

        assert outcome.passed is False
        assert outcome.score is None
        assert outcome.reason == "error"
        assert stage.status is StageStatus.FAILED
        assert application.status is ApplicationStatus.STAGE2_FAILED
        assert application.overall_score == 7.0


def test_stage_attempt_lifecycle_is_enforced(session_factory, seed):
    ids = seed()
    gate = StageGate()
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        stage = gate.begin_attempt(session, application, 1)
        stage.move_to(StageStatus.COMPLETED)

        with pytest.raises(InvalidStageTransition):
            stage.move_to(StageStatus.IN_PROGRESS)
        with pytest.raises(InvalidStageTransition):
            stage.move_to(StageStatus.FAILED)


def test_pending_attempt_cannot_complete_directly(session_factory, seed):
    ids = seed(status="stage2_passed")
    gate = StageGate()
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        stage = gate.begin_attempt(session, application, 3, status=StageStatus.PENDING)
        with pytest.raises(InvalidStageTransition):
            stage.move_to(StageStatus.COMPLETED)


@pytest.mark.parametrize(
    ("status", "stage", "action", "expected"),
    [
        ("stage1_passed", 2, "pass", "stage2_passed"),
        ("stage2_failed", 2, "pass", "stage2_passed"),
        ("submitted", 1, "fail", "stage1_failed"),
        ("stage2_passed", 3, "fail", "stage3_failed"),
        ("stage3_failed", 3, "pass", "stage3_passed"),
    ],
)
def test_override_allowed_sources(session_factory, seed, status, stage, action, expected):
    ids = seed(status=status)
    gate = StageGate()
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        application.overall_score = 6.4
        outcome = gate.override(session, application, stage, action)

        assert outcome.reason == "override"
        assert outcome.score is None
        assert application.status.value == expected
        assert application.current_stage == stage
        assert application.overall_score == 6.4

        attempt = gate.current_attempt(session, application.id, stage)
        assert attempt.ai_evaluation == {"override": action}
        assert attempt.status is (StageStatus.COMPLETED if action == "pass" else StageStatus.FAILED)
        assert attempt.score is None


@pytest.mark.parametrize(
    ("status", "stage", "action"),
    [
        ("submitted", 2, "pass"),
        ("stage3_passed", 2, "pass"),
        ("stage2_failed", 2, "fail"),
        ("stage1_passed", 3, "fail"),
        ("hired", 3, "pass"),
        ("withdrawn", 1, "fail"),
        ("stage2_pending", 2, "pass"),
        ("stage3_pending", 3, "fail"),
    ],
)
def test_override_guard_rejects_without_writing(session_factory, seed, status, stage, action):
    ids = seed(status=status)
    gate = StageGate()
    with pytest.raises(GuardViolation) as excinfo:
        with session_factory.begin() as session:
            application = session.get(Application, ids["application_id"])
            gate.override(session, application, stage, action)

    assert str(excinfo.value) == (
        f"Cannot {action} stage {stage} when application status is {status}"
    )
    assert excinfo.value.current_status == status
    with session_factory() as session:
        application = session.get(Application, ids["application_id"])
        assert application.status.value == status
        assert session.scalar(select(func.count()).select_from(ScreeningStage)) == 0


def test_override_rejects_unknown_action_and_stage(session_factory, seed):
    ids = seed()
    gate = StageGate()
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        with pytest.raises(ValueError):
            gate.override(session, application, 1, "promote")
        with pytest.raises(ValueError):
            gate.override(session, application, 4, "pass")


def test_same_transition_for_evaluation_and_override(session_factory, seed):
    automatic = seed(email="auto@example.com")
    manual = seed(email="manual@example.com")
    gate = StageGate()
    with session_factory.begin() as session:
        auto_app = session.get(Application, automatic["application_id"])
        stage = gate.begin_attempt(session, auto_app, 1)
        gate.record_evaluation(session, auto_app, stage, resume_evaluation(9, 9, 9))

        manual_app = session.get(Application, manual["application_id"])
        gate.override(session, manual_app, 1, "pass")

        assert auto_app.status is manual_app.status is ApplicationStatus.STAGE1_PASSED
        assert auto_app.current_stage == manual_app.current_stage == 1


def test_mark_hired_only_from_stage3_passed(session_factory, seed):
    ids = seed(status="stage3_passed")
    blocked = seed(status="stage2_passed", email="blocked@example.com")
    gate = StageGate()
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        gate.mark_hired(session, application)
        assert application.status is ApplicationStatus.HIRED

        other = session.get(Application, blocked["application_id"])
        with pytest.raises(GuardViolation, match="passed all 3 stages"):
            gate.mark_hired(session, other)
        assert other.status is ApplicationStatus.STAGE2_PASSED


def test_withdraw_closes_open_applications_only(session_factory, seed):
    ids = seed(status="stage1_failed")
    gate = StageGate()
    with session_factory.begin() as session:
        application = session.get(Application, ids["application_id"])
        gate.withdraw(session, application)
        assert application.status is ApplicationStatus.WITHDRAWN

        with pytest.raises(GuardViolation):
            gate.withdraw(session, application)
        with pytest.raises(GuardViolation):
            gate.begin_attempt(session, application, 1)


def test_thresholds_reject_unknown_stage():
    with pytest.raises(ValueError):
        StageGate(thresholds={4: 5.0})
    assert StageGate(thresholds={"2": 7}).threshold(2) == 7.0
