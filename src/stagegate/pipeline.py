"\"\"\"Screening pipeline: runs stages, applies verdicts and fires side effects.\"\"\""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import pendulum
import structlog
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from . import __version__
from .core.evaluators import (
    AnsweredQuestion,
    AnswerSetEvaluator,
    CallArtifacts,
    InterviewEvaluator,
    JobContext,
    ResumeEvaluator,
)
from .core.gate import StageGate, StageOutcome
from .core.results import InterviewDetail, StageEvaluation
from .core.status import ApplicationStatus, OverrideAction, StageStatus
from .db import Application, InterviewRecord, Job, ScreeningStage, Stage2Answer, Stage2Question
from .dispatch import SideEffectDispatcher
from .errors import (
    ApplicationNotFound,
    GuardViolation,
    IncompleteAnswersError,
    InputMissingError,
    ResolutionError,
)
from .schemas import AnswerSubmission, EndOfCallEvent, OverrideCommand

FAILED_MESSAGES: dict[int, str] = {
    1: (
        "Your application did not advance past resume screening for this role. "
        "We encourage you to apply to other positions that match your experience."
    ),
    2: (
        "Your application did not advance past the questions stage for this role. "
        "Consider applying to other open positions."
    ),
    3: (
        "Your application did not advance past the voice interview for this role. "
        "We encourage you to explore other roles that fit your profile."
    ),
}
COMPLETED_MESSAGE = "You’ve completed all stages for this role. We’ll be in touch if we move forward."
ENDED_MESSAGE = "This application has ended."
MAX_AREAS_FROM_ANSWERS = 3


@dataclass(slots=True)
class InterviewSlot:
    """Stage 3 attempt waiting for its call to end."""

    application_id: str
    stage_id: str
    attempt: int
    assistant_id: str


@dataclass(slots=True)
class CandidateOutcome:
    """Candidate-facing view of where an application ended up."""

    application_id: str
    status: str
    stage: int | None
    passed: bool
    failed: bool
    message: str
    strengths: list[str] = field(default_factory=list)
    areas_to_improve: list[str] = field(default_factory=list)
    job_title: str | None = None
    department: str | None = None


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: dict) -> None:
        entry = {
            "timestamp": pendulum.now("UTC").to_iso8601_string(),
            "app_version": __version__,
            **record,
        }
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(entry, ensure_ascii=False))
            handle.write("\n")


class ScreeningPipeline:
    """Runs stage evaluations through the gate and hands outcomes to the dispatcher.

    Each gate transition commits in its own transaction; side effects run only
    after that commit.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session],
        gate: StageGate,
        resume_evaluator: ResumeEvaluator,
        answer_evaluator: AnswerSetEvaluator,
        interview_evaluator: InterviewEvaluator,
        dispatcher: SideEffectDispatcher,
        audit_logger: AuditLogger | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._gate = gate
        self._resume = resume_evaluator
        self._answers = answer_evaluator
        self._interview = interview_evaluator
        self._dispatcher = dispatcher
        self._audit = audit_logger
        self._logger = structlog.get_logger(__name__)

    # -- stage 1 -----------------------------------------------------------

    def run_stage1(self, application_id: str) -> StageOutcome:
        """Evaluate the resume. Each call appends a new Stage 1 attempt."""
        with self._session_factory.begin() as session:
            application = self._load(session, application_id)
            resume = (application.resume_text or "").strip()
            job = application.job
            stage = self._gate.begin_attempt(session, application, 1)
            if not resume or job is None:
                self._logger.info(
                    "stage1.skipped",
                    application_id=application_id,
                    attempt=stage.attempt,
                    reason="No resume text" if not resume else "Job not found",
                )
                skipped = self._gate.record_skip(session, application, stage)
            else:
                skipped = None
                stage_id = stage.id
                job_context = _job_context(job)

        if skipped is not None:
            self._finish(skipped)
            return skipped
        return self._evaluate(
            application_id,
            stage_id,
            1,
            lambda: self._resume.evaluate(resume, job_context),
        )

    def backfill_stage1(self) -> dict[str, int]:
        """Run Stage 1 for every application that has never had a Stage 1 attempt."""
        with self._session_factory() as session:
            has_stage1 = select(ScreeningStage.application_id).where(
                ScreeningStage.stage_number == 1
            )
            total = len(session.scalars(select(Application.id)).all())
            to_run = session.scalars(
                select(Application.id)
                .where(Application.id.not_in(has_stage1))
                .order_by(Application.created_at)
            ).all()

        completed = failed = 0
        for application_id in to_run:
            try:
                self.run_stage1(application_id)
            except Exception:  # noqa: BLE001
                failed += 1
                self._logger.error(
                    "stage1.backfill_failed", application_id=application_id, exc_info=True
                )
            else:
                completed += 1

        summary = {
            "total": len(to_run),
            "completed": completed,
            "failed": failed,
            "skipped": total - len(to_run),
        }
        self._logger.info("stage1.backfill", **summary)
        return summary

    # -- stage 2 -----------------------------------------------------------

    def submit_answers(
        self,
        application_id: str,
        answers: Sequence[AnswerSubmission | Mapping[str, Any]],
    ) -> StageOutcome:
        """Store a complete answer set as a new Stage 2 attempt, then evaluate it."""
        submissions = [
            item if isinstance(item, AnswerSubmission) else AnswerSubmission.model_validate(item)
            for item in answers
        ]
        with self._session_factory.begin() as session:
            application = self._load(session, application_id)
            status = ApplicationStatus(application.status)
            if status is not ApplicationStatus.STAGE1_PASSED:
                raise GuardViolation(
                    "Stage 2 is not available for this application",
                    application_id=application_id,
                    current_status=status.value,
                    action="submit",
                    stage_number=2,
                )
            if self._gate.current_attempt(session, application_id, 2) is not None:
                raise GuardViolation(
                    "Stage 2 already submitted for this application",
                    application_id=application_id,
                    current_status=status.value,
                    action="submit",
                    stage_number=2,
                )
            questions = list(application.job.questions)
            if not questions:
                raise InputMissingError("Job has no Stage 2 questions")
            texts = _complete_answers(application, questions, submissions)

            stage = self._gate.begin_attempt(session, application, 2)
            items = self._attach_answers(session, stage, [(q, texts[q.id]) for q in questions])
            stage_id = stage.id
            job_context = _job_context(application.job)

        return self._evaluate(
            application_id,
            stage_id,
            2,
            lambda: self._answers.evaluate(items, job_context),
        )

    # -- stage 3 -----------------------------------------------------------

    def prepare_interview(self, application_id: str, assistant_id: str) -> InterviewSlot:
        """Pre-create the pending Stage 3 attempt and interview record for a call."""
        if not assistant_id:
            raise ValueError("assistant_id is required")
        with self._session_factory.begin() as session:
            application = self._load(session, application_id)
            status = ApplicationStatus(application.status)
            if status not in (ApplicationStatus.STAGE2_PASSED, ApplicationStatus.STAGE3_PENDING):
                raise GuardViolation(
                    "Stage 3 is only available after passing Stage 2",
                    application_id=application_id,
                    current_status=status.value,
                    action="prepare",
                    stage_number=3,
                )
            stage = self._gate.current_attempt(session, application_id, 3)
            if stage is None or stage.status is not StageStatus.PENDING:
                stage = self._gate.begin_attempt(
                    session, application, 3, status=StageStatus.PENDING
                )
            if stage.interview is None:
                stage.interview = InterviewRecord(assistant_id=assistant_id)
            else:
                stage.interview.assistant_id = assistant_id
            session.flush()
            slot = InterviewSlot(
                application_id=application_id,
                stage_id=stage.id,
                attempt=stage.attempt,
                assistant_id=assistant_id,
            )
        self._logger.info("stage3.prepared", **asdict(slot))
        return slot

    def process_end_of_call(
        self, event: EndOfCallEvent | Mapping[str, Any]
    ) -> StageOutcome | None:
        """Evaluate a finished interview. Unresolvable events are logged and dropped.

        A call that ends after its attempt was superseded (HR override or
        withdrawal) is stored on its interview record without evaluation.
        """
        if not isinstance(event, EndOfCallEvent):
            event = EndOfCallEvent.model_validate(event)
        call = CallArtifacts(
            transcript=event.transcript,
            call_id=event.call_id or None,
            recording_url=event.recording_url,
            duration_seconds=event.duration_seconds,
        )
        try:
            with self._session_factory.begin() as session:
                stage, application, superseded = self._resolve_interview(
                    session, event.assistant_id
                )
                application_id = application.id
                stage_id = stage.id
                if superseded is not None:
                    self._gate.close_superseded(session, stage, call.detail())
                else:
                    stage.move_to(StageStatus.IN_PROGRESS)
                    job_context = _job_context(application.job)
        except ResolutionError as exc:
            self._logger.warning(
                "stage3.resolution_failed",
                assistant_id=event.assistant_id,
                call_id=event.call_id,
                error=str(exc),
            )
            return None

        if superseded is not None:
            self._logger.warning(
                "stage3.call_superseded",
                application_id=application_id,
                stage_id=stage_id,
                call_id=event.call_id,
                reason=superseded,
            )
            return None
        return self._evaluate(
            application_id,
            stage_id,
            3,
            lambda: self._interview.evaluate(call, job_context),
            error_detail=call.detail(),
        )

    # -- re-runs -----------------------------------------------------------

    def rerun_stage(self, application_id: str, stage_number: int) -> StageOutcome:
        """Evaluate a stage again as a fresh attempt; earlier attempts are kept."""
        if stage_number == 1:
            return self.run_stage1(application_id)
        if stage_number == 2:
            return self._rerun_answers(application_id)
        if stage_number == 3:
            return self._rerun_interview(application_id)
        raise ValueError(f"Invalid stage {stage_number!r}; use 1, 2, or 3")

    def _rerun_answers(self, application_id: str) -> StageOutcome:
        with self._session_factory.begin() as session:
            application = self._load(session, application_id)
            previous = self._gate.current_attempt(session, application_id, 2)
            if previous is None or not previous.answers:
                raise InputMissingError("No Stage 2 answers to re-evaluate")
            answered = sorted(previous.answers, key=lambda a: a.question.question_order)
            stage = self._gate.begin_attempt(session, application, 2)
            items = self._attach_answers(
                session, stage, [(a.question, a.answer_text) for a in answered]
            )
            stage_id = stage.id
            job_context = _job_context(application.job)

        return self._evaluate(
            application_id,
            stage_id,
            2,
            lambda: self._answers.evaluate(items, job_context),
        )

    def _rerun_interview(self, application_id: str) -> StageOutcome:
        with self._session_factory.begin() as session:
            application = self._load(session, application_id)
            if application.job is None:
                raise InputMissingError("Job not found")
            previous = session.scalars(
                select(InterviewRecord)
                .join(ScreeningStage, InterviewRecord.screening_stage_id == ScreeningStage.id)
                .where(
                    ScreeningStage.application_id == application_id,
                    ScreeningStage.stage_number == 3,
                    InterviewRecord.transcript.is_not(None),
                )
                .order_by(ScreeningStage.attempt.desc())
                .limit(1)
            ).first()
            if previous is None:
                raise InputMissingError("No interview transcript to re-evaluate")
            stage = self._gate.begin_attempt(session, application, 3)
            stage.interview = InterviewRecord(
                assistant_id=previous.assistant_id,
                call_id=previous.call_id,
                transcript=previous.transcript,
                recording_url=previous.recording_url,
                call_duration=previous.call_duration,
            )
            session.flush()
            call = CallArtifacts(
                transcript=previous.transcript or "",
                call_id=previous.call_id,
                recording_url=previous.recording_url,
                duration_seconds=previous.call_duration,
            )
            stage_id = stage.id
            job_context = _job_context(application.job)

        return self._evaluate(
            application_id,
            stage_id,
            3,
            lambda: self._interview.evaluate(call, job_context),
            error_detail=call.detail(),
        )

    # -- HR actions --------------------------------------------------------

    def override(
        self,
        application_id: str,
        stage_number: int,
        action: OverrideAction,
    ) -> StageOutcome:
        """Force a stage verdict; rejected with no write when the guard fails."""
        command = OverrideCommand(application_id=application_id, action=action, stage=stage_number)
        with self._session_factory.begin() as session:
            application = self._load(session, command.application_id)
            outcome = self._gate.override(session, application, command.stage, command.action)
        self._finish(outcome)
        return outcome

    def mark_hired(self, application_id: str) -> None:
        with self._session_factory.begin() as session:
            application = self._load(session, application_id)
            self._gate.mark_hired(session, application)
            candidate_id = application.candidate_id
            candidate_email = application.candidate.email if application.candidate else None
            job_title = application.job.title if application.job else None

        self._logger.info("application.hired", application_id=application_id)
        if self._audit:
            self._audit.append(
                {"application_id": application_id, "status": ApplicationStatus.HIRED.value, "reason": "hired"}
            )
        self._dispatcher.dispatch_hired(
            application_id=application_id,
            candidate_id=candidate_id,
            candidate_email=candidate_email,
            job_title=job_title,
        )

    def withdraw(self, application_id: str) -> None:
        with self._session_factory.begin() as session:
            application = self._load(session, application_id)
            self._gate.withdraw(session, application)
        self._logger.info("application.withdrawn", application_id=application_id)
        if self._audit:
            self._audit.append(
                {
                    "application_id": application_id,
                    "status": ApplicationStatus.WITHDRAWN.value,
                    "reason": "withdrawn",
                }
            )

    # -- reads -------------------------------------------------------------

    def describe_outcome(self, application_id: str) -> CandidateOutcome:
        with self._session_factory() as session:
            application = self._load(session, application_id)
            status = ApplicationStatus(application.status)
            failed = status.value.endswith("_failed")
            passed = status is ApplicationStatus.STAGE3_PASSED
            stage_number = status.stage_number

            strengths: list[str] = []
            areas: list[str] = []
            message = ""
            if failed and stage_number:
                message = FAILED_MESSAGES[stage_number]
                latest = self._gate.current_attempt(session, application_id, stage_number)
                if latest is not None:
                    strengths, areas = _feedback(latest)
            if passed:
                message = COMPLETED_MESSAGE

            job = application.job
            return CandidateOutcome(
                application_id=application_id,
                status=status.value,
                stage=stage_number,
                passed=passed,
                failed=failed,
                message=message or (ENDED_MESSAGE if failed else ""),
                strengths=strengths,
                areas_to_improve=areas,
                job_title=job.title if job else None,
                department=job.department if job else None,
            )

    # -- internals ---------------------------------------------------------

    def _evaluate(
        self,
        application_id: str,
        stage_id: str,
        stage_number: int,
        evaluate: Callable[[], StageEvaluation],
        *,
        error_detail: InterviewDetail | None = None,
    ) -> StageOutcome:
        log = self._logger.bind(application_id=application_id, stage_number=stage_number)
        outcome: StageOutcome | None = None
        try:
            evaluation = evaluate()
        except Exception:  # noqa: BLE001
            log.error(f"stage{stage_number}.evaluation_failed", exc_info=True)
        else:
            try:
                with self._session_factory.begin() as session:
                    application = self._load(session, application_id)
                    stage = session.get(ScreeningStage, stage_id)
                    outcome = self._gate.record_evaluation(session, application, stage, evaluation)
            except Exception:  # noqa: BLE001
                log.error(f"stage{stage_number}.record_failed", exc_info=True)

        if outcome is None:
            with self._session_factory.begin() as session:
                application = self._load(session, application_id)
                stage = session.get(ScreeningStage, stage_id)
                outcome = self._gate.record_error(session, application, stage, detail=error_detail)

        self._finish(outcome)
        return outcome

    def _finish(self, outcome: StageOutcome) -> None:
        self._logger.info("screening.result", **outcome.as_record())
        if self._audit:
            self._audit.append(outcome.as_record())
        self._dispatcher.dispatch(outcome)

    @staticmethod
    def _load(session: Session, application_id: str) -> Application:
        application = session.get(Application, application_id)
        if application is None:
            raise ApplicationNotFound(application_id)
        return application

    @staticmethod
    def _attach_answers(
        session: Session,
        stage: ScreeningStage,
        pairs: list[tuple[Stage2Question, str]],
    ) -> list[AnsweredQuestion]:
        rows = []
        for question, text in pairs:
            answer = Stage2Answer(question_id=question.id, answer_text=text)
            stage.answers.append(answer)
            rows.append((question, answer))
        session.flush()
        return [
            AnsweredQuestion(answer_id=answer.id, question=question.question_text, answer=answer.answer_text)
            for question, answer in rows
        ]

    def _resolve_interview(
        self, session: Session, assistant_id: str
    ) -> tuple[ScreeningStage, Application, str | None]:
        """Follow assistant id to its attempt and application.

        The third item names why the attempt no longer decides Stage 3, or is
        None when the call should be evaluated.
        """
        record = session.scalars(
            select(InterviewRecord)
            .where(InterviewRecord.assistant_id == assistant_id)
            .order_by(InterviewRecord.created_at.desc())
            .limit(1)
        ).first()
        if record is None:
            raise ResolutionError(f"No interview found for assistant {assistant_id}")
        stage = record.stage
        if stage is None:
            raise ResolutionError(f"Interview {record.id} has no screening stage")
        application = stage.application
        if application is None:
            raise ResolutionError(f"Screening stage {stage.id} has no application")
        if application.job is None:
            raise ResolutionError(f"Application {application.id} has no job")
        if stage.status is not StageStatus.PENDING:
            raise ResolutionError(
                f"Screening stage {stage.id} was already processed ({StageStatus(stage.status).value})"
            )
        status = ApplicationStatus(application.status)
        if status.is_closed:
            return stage, application, f"application is {status.value}"
        latest = self._gate.current_attempt(session, application.id, 3)
        if latest is None or latest.id != stage.id:
            return stage, application, "not the current Stage 3 attempt"
        return stage, application, None


def _job_context(job: Job) -> JobContext:
    return JobContext(
        title=job.title,
        description=job.description or "",
        requirements=[str(item) for item in job.requirements or []],
        responsibilities=[str(item) for item in job.responsibilities or []],
    )


def _complete_answers(
    application: Application,
    questions: list[Stage2Question],
    submissions: list[AnswerSubmission],
) -> dict[str, str]:
    """Map question id to trimmed answer text, rejecting incomplete answer sets."""
    texts: dict[str, str] = {}
    for submission in submissions:
        if submission.question_id in texts:
            raise _incomplete(application, f"Question {submission.question_id} answered more than once")
        texts[submission.question_id] = submission.answer_text

    expected = {question.id for question in questions}
    if set(texts) != expected:
        raise _incomplete(application, "You must answer all questions")
    for question in questions:
        if question.is_required and not texts[question.id]:
            raise _incomplete(application, "You must answer all questions")
    return texts


def _incomplete(application: Application, message: str) -> IncompleteAnswersError:
    return IncompleteAnswersError(
        message,
        application_id=application.id,
        current_status=ApplicationStatus(application.status).value,
        action="submit",
        stage_number=2,
    )


def _feedback(stage: ScreeningStage) -> tuple[list[str], list[str]]:
    """Strengths and areas to improve recorded on a stage attempt."""
    if stage.stage_number == 1 and stage.resume_analysis is not None:
        analysis = stage.resume_analysis
        return list(analysis.strengths or []), list(analysis.concerns or [])
    if stage.stage_number == 2:
        answered = sorted(stage.answers, key=lambda a: a.question.question_order)
        feedback = [a.ai_feedback for a in answered if a.ai_feedback]
        return [], feedback[:MAX_AREAS_FROM_ANSWERS]
    if stage.stage_number == 3 and stage.interview is not None:
        return list(stage.interview.strengths or []), list(stage.interview.weaknesses or [])
    return [], []


__all__ = [
    "AuditLogger",
    "CandidateOutcome",
    "InterviewSlot",
    "ScreeningPipeline",
]
