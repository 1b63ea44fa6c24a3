"\"\"\"Stage gate: the only writer of application status.\"\"\""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Mapping

import structlog
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from ..db import Application, InterviewRecord, ResumeAnalysis, ScreeningStage, utcnow
from ..errors import GuardViolation
from .results import AnswerSetDetail, InterviewDetail, ResumeDetail, StageEvaluation
from .status import ApplicationStatus, OverrideAction, StageStatus, STAGE_NUMBERS

OutcomeReason = Literal["evaluated", "error", "skipped", "override"]

_S = ApplicationStatus


@dataclass(slots=True)
class StageOutcome:
    """Terminal result of one stage attempt, handed to the side-effect dispatcher."""

    application_id: str
    candidate_id: str
    candidate_email: str | None
    job_id: str
    job_title: str | None
    stage_number: int
    attempt: int
    passed: bool
    score: float | None
    threshold: float
    status: ApplicationStatus
    reason: OutcomeReason

    def as_record(self) -> dict:
        return {
            "application_id": self.application_id,
            "job_id": self.job_id,
            "stage_number": self.stage_number,
            "attempt": self.attempt,
            "passed": self.passed,
            "score": self.score,
            "threshold": self.threshold,
            "status": self.status.value,
            "reason": self.reason,
        }


class StageGate:
    """Decides pass/fail for a stage attempt and writes the application transition.

    Every status change goes through :meth:`_apply`, which always writes the
    full ``(status, current_stage, overall_score)`` tuple.
    """

    DEFAULT_THRESHOLDS: dict[int, float] = {1: 5.0, 2: 5.0, 3: 5.0}

    # Source statuses from which HR may force a verdict for each stage.
    PASS_SOURCES: dict[int, frozenset[ApplicationStatus]] = {
        1: frozenset({_S.SUBMITTED, _S.STAGE1_FAILED}),
        2: frozenset({_S.STAGE1_PASSED, _S.STAGE2_FAILED}),
        3: frozenset({_S.STAGE2_PASSED, _S.STAGE3_FAILED}),
    }
    FAIL_SOURCES: dict[int, frozenset[ApplicationStatus]] = {
        1: frozenset({_S.SUBMITTED}),
        2: frozenset({_S.STAGE1_PASSED}),
        3: frozenset({_S.STAGE2_PASSED}),
    }

    def __init__(self, *, thresholds: Mapping[int | str, float] | None = None) -> None:
        self._thresholds = self.DEFAULT_THRESHOLDS.copy()
        for stage_number, value in (thresholds or {}).items():
            stage = int(stage_number)
            if stage not in STAGE_NUMBERS:
                raise ValueError(f"Unknown stage number in thresholds: {stage_number!r}")
            self._thresholds[stage] = float(value)
        self._logger = structlog.get_logger(__name__)

    def threshold(self, stage_number: int) -> float:
        return self._thresholds[stage_number]

    @staticmethod
    def decide(score: float, threshold: float) -> bool:
        return score >= threshold

    @staticmethod
    def status_for(stage_number: int, passed: bool) -> ApplicationStatus:
        if passed:
            return ApplicationStatus.passed(stage_number)
        return ApplicationStatus.failed(stage_number)

    # -- attempt log -------------------------------------------------------

    @staticmethod
    def current_attempt(
        session: Session, application_id: str, stage_number: int
    ) -> ScreeningStage | None:
        """Latest attempt for the stage, by attempt sequence."""
        return session.scalars(
            select(ScreeningStage)
            .where(
                ScreeningStage.application_id == application_id,
                ScreeningStage.stage_number == stage_number,
            )
            .order_by(ScreeningStage.attempt.desc())
            .limit(1)
        ).first()

    def begin_attempt(
        self,
        session: Session,
        application: Application,
        stage_number: int,
        *,
        status: StageStatus = StageStatus.IN_PROGRESS,
    ) -> ScreeningStage:
        """Append a new attempt row for the stage."""
        current = ApplicationStatus(application.status)
        if current.is_closed:
            raise GuardViolation(
                f"Cannot start stage {stage_number} when application status is {current.value}",
                application_id=application.id,
                current_status=current.value,
                action="start",
                stage_number=stage_number,
            )
        last = session.scalar(
            select(func.max(ScreeningStage.attempt)).where(
                ScreeningStage.application_id == application.id,
                ScreeningStage.stage_number == stage_number,
            )
        )
        stage = ScreeningStage(
            application_id=application.id,
            stage_number=stage_number,
            attempt=(last or 0) + 1,
            status=StageStatus.PENDING,
            passing_threshold=self.threshold(stage_number),
        )
        session.add(stage)
        if status is StageStatus.IN_PROGRESS:
            stage.move_to(StageStatus.IN_PROGRESS)
        elif status is not StageStatus.PENDING:
            raise ValueError(f"New attempts start pending or in progress, not {status.value}")
        session.flush()
        self._logger.info(
            "gate.attempt_started",
            application_id=application.id,
            stage_number=stage_number,
            attempt=stage.attempt,
            stage_status=stage.status.value,
        )
        return stage

    # -- automatic path ----------------------------------------------------

    def record_evaluation(
        self,
        session: Session,
        application: Application,
        stage: ScreeningStage,
        evaluation: StageEvaluation,
    ) -> StageOutcome:
        if evaluation.stage_number != stage.stage_number:
            raise ValueError(
                f"Stage {evaluation.stage_number} evaluation recorded on a "
                f"stage {stage.stage_number} attempt"
            )
        score = evaluation.score
        self._write_detail(session, stage, evaluation)
        stage.score = score
        stage.ai_evaluation = evaluation.matrix.to_payload()
        stage.move_to(StageStatus.COMPLETED)
        passed = self.decide(score, stage.passing_threshold)
        self._apply(
            application,
            stage.stage_number,
            passed=passed,
            overall_score=score,
            ai_summary=evaluation.summary,
        )
        session.flush()
        return self._outcome(application, stage, passed=passed, score=score, reason="evaluated")

    def record_error(
        self,
        session: Session,
        application: Application,
        stage: ScreeningStage,
        *,
        detail: InterviewDetail | None = None,
    ) -> StageOutcome:
        """Fail the attempt after an evaluator error. Call artifacts are still kept."""
        if detail is not None:
            self._write_interview(stage, detail)
        stage.move_to(StageStatus.FAILED)
        self._apply(
            application,
            stage.stage_number,
            passed=False,
            overall_score=application.overall_score,
        )
        session.flush()
        return self._outcome(application, stage, passed=False, score=None, reason="error")

    def record_skip(
        self,
        session: Session,
        application: Application,
        stage: ScreeningStage,
    ) -> StageOutcome:
        stage.move_to(StageStatus.SKIPPED)
        self._apply(
            application,
            stage.stage_number,
            passed=False,
            overall_score=application.overall_score,
        )
        session.flush()
        return self._outcome(application, stage, passed=False, score=None, reason="skipped")

    def close_superseded(
        self, session: Session, stage: ScreeningStage, detail: InterviewDetail
    ) -> None:
        """Store a late call on an attempt that no longer decides the stage.

        The attempt is closed as skipped and the application is not touched.
        """
        self._write_interview(stage, detail)
        stage.move_to(StageStatus.IN_PROGRESS)
        stage.move_to(StageStatus.SKIPPED)
        session.flush()
        self._logger.info(
            "gate.attempt_superseded",
            application_id=stage.application_id,
            stage_number=stage.stage_number,
            attempt=stage.attempt,
        )

    # -- HR path -----------------------------------------------------------

    def check_override(
        self, application: Application, stage_number: int, action: OverrideAction
    ) -> None:
        if action not in ("pass", "fail"):
            raise ValueError(f"Invalid action {action!r}; use pass or fail")
        if stage_number not in STAGE_NUMBERS:
            raise ValueError(f"Invalid stage {stage_number!r}; use 1, 2, or 3")
        sources = self.PASS_SOURCES if action == "pass" else self.FAIL_SOURCES
        status = ApplicationStatus(application.status)
        if status not in sources[stage_number]:
            raise GuardViolation(
                f"Cannot {action} stage {stage_number} when application status is {status.value}",
                application_id=application.id,
                current_status=status.value,
                action=action,
                stage_number=stage_number,
            )

    def override(
        self,
        session: Session,
        application: Application,
        stage_number: int,
        action: OverrideAction,
    ) -> StageOutcome:
        """Force a verdict. The guard runs before anything is written."""
        self.check_override(application, stage_number, action)
        passed = action == "pass"
        stage = self.begin_attempt(session, application, stage_number)
        stage.move_to(StageStatus.COMPLETED if passed else StageStatus.FAILED)
        stage.ai_evaluation = {"override": action}
        self._apply(
            application,
            stage_number,
            passed=passed,
            overall_score=application.overall_score,
        )
        session.flush()
        return self._outcome(application, stage, passed=passed, score=None, reason="override")

    def mark_hired(self, session: Session, application: Application) -> None:
        status = ApplicationStatus(application.status)
        if status is not ApplicationStatus.STAGE3_PASSED:
            raise GuardViolation(
                "Only applications that passed all 3 stages can be marked as hired",
                application_id=application.id,
                current_status=status.value,
                action="hire",
                stage_number=3,
            )
        self._write(application, ApplicationStatus.HIRED, 3, application.overall_score)
        session.flush()

    def withdraw(self, session: Session, application: Application) -> None:
        status = ApplicationStatus(application.status)
        if status.is_closed:
            raise GuardViolation(
                f"Cannot withdraw when application status is {status.value}",
                application_id=application.id,
                current_status=status.value,
                action="withdraw",
            )
        self._write(
            application,
            ApplicationStatus.WITHDRAWN,
            application.current_stage,
            application.overall_score,
        )
        session.flush()

    # -- writers -----------------------------------------------------------

    def _apply(
        self,
        application: Application,
        stage_number: int,
        *,
        passed: bool,
        overall_score: float | None,
        ai_summary: str | None = None,
    ) -> None:
        if ai_summary is not None:
            application.ai_summary = ai_summary
        self._write(
            application,
            self.status_for(stage_number, passed),
            stage_number,
            overall_score,
        )

    def _write(
        self,
        application: Application,
        status: ApplicationStatus,
        current_stage: int | None,
        overall_score: float | None,
    ) -> None:
        previous = ApplicationStatus(application.status)
        application.status = status
        application.current_stage = current_stage
        application.overall_score = overall_score
        application.updated_at = utcnow()
        self._logger.info(
            "gate.transition",
            application_id=application.id,
            from_status=previous.value,
            status=status.value,
            current_stage=current_stage,
            overall_score=overall_score,
        )

    def _write_detail(
        self, session: Session, stage: ScreeningStage, evaluation: StageEvaluation
    ) -> None:
        detail = evaluation.detail
        if isinstance(detail, ResumeDetail):
            session.add(
                ResumeAnalysis(
                    stage=stage,
                    skills_match=detail.skills_match,
                    experience_match=detail.experience_match,
                    strengths=detail.strengths,
                    concerns=detail.concerns or None,
                    fit_rating=evaluation.matrix.fit_rating,
                    score=evaluation.score,
                    evaluation_matrix=evaluation.matrix.to_payload(),
                )
            )
        elif isinstance(detail, AnswerSetDetail):
            answers = {answer.id: answer for answer in stage.answers}
            for feedback in detail.answers:
                answer = answers.get(feedback.answer_id)
                if answer is None:
                    raise ValueError(
                        f"Answer {feedback.answer_id!r} does not belong to attempt {stage.id}"
                    )
                answer.ai_score = feedback.score
                answer.ai_feedback = feedback.feedback
        elif isinstance(detail, InterviewDetail):
            record = self._write_interview(stage, detail)
            record.overall_score = evaluation.score
            record.evaluation_matrix = evaluation.matrix.to_payload()
        else:  # pragma: no cover - exhaustive over StageDetail
            raise TypeError(f"Unsupported stage detail: {type(detail).__name__}")

    @staticmethod
    def _write_interview(stage: ScreeningStage, detail: InterviewDetail) -> InterviewRecord:
        record = stage.interview
        if record is None:
            raise ValueError(f"Stage 3 attempt {stage.id} has no interview record")
        record.call_id = detail.call_id
        record.transcript = detail.transcript
        record.recording_url = detail.recording_url
        record.call_duration = detail.duration_seconds
        record.completed_at = utcnow()
        if detail.scores is not None:
            record.communication_score = detail.scores.get("communication")
            record.problem_solving_score = detail.scores.get("problem_solving")
            record.role_understanding_score = detail.scores.get("role_understanding")
            record.strengths = list(detail.strengths)
            record.weaknesses = list(detail.weaknesses)
        return record

    def _outcome(
        self,
        application: Application,
        stage: ScreeningStage,
        *,
        passed: bool,
        score: float | None,
        reason: OutcomeReason,
    ) -> StageOutcome:
        outcome = StageOutcome(
            application_id=application.id,
            candidate_id=application.candidate_id,
            candidate_email=application.candidate.email if application.candidate else None,
            job_id=application.job_id,
            job_title=application.job.title if application.job else None,
            stage_number=stage.stage_number,
            attempt=stage.attempt,
            passed=passed,
            score=score,
            threshold=stage.passing_threshold,
            status=ApplicationStatus(application.status),
            reason=reason,
        )
        self._logger.info("gate.outcome", **outcome.as_record())
        return outcome


__all__ = ["OutcomeReason", "StageGate", "StageOutcome"]
