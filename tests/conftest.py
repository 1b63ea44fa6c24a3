from __future__ import annotations

from typing import Any, Callable, Iterator

import pytest
import structlog
from sqlalchemy.orm import Session, sessionmaker

from stagegate.core.evaluators import AnswerSetEvaluator, InterviewEvaluator, ResumeEvaluator
from stagegate.core.gate import StageGate
from stagegate.core.status import ApplicationStatus
from stagegate.db import (
    Application,
    Candidate,
    Job,
    Stage2Question,
    build_engine,
    build_session_factory,
    init_db,
)
from stagegate.dispatch import SideEffectDispatcher
from stagegate.errors import InferenceError
from stagegate.pipeline import ScreeningPipeline


def resume_result(skills: float = 8, experience: float = 7, education: float = 6) -> dict:
    return {
        "dimensionScores": {"skills": skills, "experience": experience, "education": education},
        "dimensionRationales": {
            "skills": "Most key skills present.",
            "experience": "Five years in a similar role.",
            "education": "Relevant degree.",
        },
        "skillsMatch": {
            "required": ["python", "sql", "aws"],
            "found": ["python", "sql"],
            "missing": ["aws"],
        },
        "experienceMatch": {"required": "3+ years backend", "found": "5 years backend", "match": True},
        "gaps": ["Cloud experience unclear"],
        "summary": "Solid backend engineer.",
    }


def answers_result(*scores: float) -> dict:
    return {
        "evaluations": [{"score": score, "feedback": f"Feedback {idx}"} for idx, score in enumerate(scores, 1)],
        "summary": "Clear and relevant answers.",
    }


def matrix_result(relevance: float = 7, clarity: float = 7, role_fit: float = 7) -> dict:
    return {
        "dimensionScores": {"relevance": relevance, "clarity": clarity, "role_fit": role_fit},
        "dimensionRationales": {"relevance": "On topic.", "clarity": "Well written.", "role_fit": "Good fit."},
    }


def interview_result(communication: float = 8, problem_solving: float = 7, role_understanding: float = 6) -> dict:
    return {
        "communicationScore": communication,
        "problemSolvingScore": problem_solving,
        "roleUnderstandingScore": role_understanding,
        "communicationRationale": "Clear answers.",
        "problemSolvingRationale": "Gave concrete examples.",
        "roleUnderstandingRationale": "Knows the role.",
        "strengths": ["Structured answers"],
        "weaknesses": ["Limited cloud depth"],
    }


class StubInferenceClient:
    """Scripted inference collaborator keyed by call name."""

    def __init__(self, responses: dict[str, Any] | None = None) -> None:
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[dict[str, Any]] = []

    def evaluate(self, *, name: str, system_prompt: str, user_prompt: str, schema: dict) -> dict:
        self.calls.append(
            {"name": name, "system_prompt": system_prompt, "user_prompt": user_prompt, "schema": schema}
        )
        response = self.responses.get(name)
        if response is None:
            raise InferenceError(f"{name}: no scripted response")
        if isinstance(response, Exception):
            raise response
        if callable(response):
            return response()
        return response

    def names(self) -> list[str]:
        return [call["name"] for call in self.calls]


class RecordingMailer:
    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.stage_results: list[tuple[str, str, bool, str]] = []
        self.hired: list[tuple[str, str]] = []

    def send_stage_result(self, email: str, job_title: str, passed: bool, label: str) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.stage_results.append((email, job_title, passed, label))

    def send_hired(self, email: str, job_title: str) -> None:
        if self.fail:
            raise RuntimeError("smtp down")
        self.hired.append((email, job_title))


@pytest.fixture(autouse=True)
def _reset_structlog() -> Iterator[None]:
    yield
    structlog.reset_defaults()


@pytest.fixture
def session_factory() -> sessionmaker[Session]:
    engine = build_engine("sqlite://")
    init_db(engine)
    return build_session_factory(engine)


@pytest.fixture
def inference() -> StubInferenceClient:
    return StubInferenceClient()


@pytest.fixture
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture
def gate() -> StageGate:
    return StageGate()


@pytest.fixture
def dispatcher(session_factory, mailer) -> SideEffectDispatcher:
    return SideEffectDispatcher(session_factory=session_factory, mailer=mailer)


@pytest.fixture
def pipeline(session_factory, gate, inference, dispatcher) -> ScreeningPipeline:
    return ScreeningPipeline(
        session_factory=session_factory,
        gate=gate,
        resume_evaluator=ResumeEvaluator(client=inference),
        answer_evaluator=AnswerSetEvaluator(client=inference),
        interview_evaluator=InterviewEvaluator(client=inference),
        dispatcher=dispatcher,
    )


@pytest.fixture
def seed(session_factory) -> Callable[..., dict[str, str]]:
    """Create a candidate, a job with questions and an application; return their ids."""

    def _seed(
        *,
        resume_text: str | None = "Backend engineer, 5 years of Python and SQL.",
        status: str = "submitted",
        questions: tuple[str, ...] = ("Why this role?", "Describe a hard bug you fixed."),
        email: str = "ada@example.com",
        other_jobs: int = 1,
    ) -> dict[str, str]:
        with session_factory.begin() as session:
            candidate = Candidate(email=email, name="Ada")
            job = Job(
                title="Backend Engineer",
                department="Engineering",
                description="Build APIs.",
                requirements=["Python", "SQL"],
                responsibilities=["Own services"],
            )
            session.add_all([candidate, job])
            session.flush()
            question_ids = []
            for order, text in enumerate(questions, start=1):
                question = Stage2Question(job_id=job.id, question_text=text, question_order=order)
                session.add(question)
                session.flush()
                question_ids.append(question.id)
            for idx in range(other_jobs):
                session.add(Job(title=f"Data Engineer {idx}", description="Pipelines."))
            application = Application(
                job_id=job.id,
                candidate_id=candidate.id,
                resume_text=resume_text,
                status=ApplicationStatus(status),
            )
            session.add(application)
            session.flush()
            ids = {
                "application_id": application.id,
                "candidate_id": candidate.id,
                "job_id": job.id,
            }
            ids.update({f"question_{idx}": qid for idx, qid in enumerate(question_ids, start=1)})
            return ids

    return _seed
