"""Normalized evaluator output shared by the gate and the pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Literal, Union

from .matrix import EvaluationMatrix


@dataclass(slots=True)
class ResumeDetail:
    """Stage 1 artifacts written to the resume analysis record."""

    skills_match: dict[str, list[str]]
    experience_match: dict[str, Any]
    strengths: list[str]
    concerns: list[str]
    stage_number: Literal[1] = 1


@dataclass(slots=True)
class AnswerFeedback:
    answer_id: str
    score: float
    feedback: str | None


@dataclass(slots=True)
class AnswerSetDetail:
    """Stage 2 per-answer scores and feedback, in question order."""

    answers: list[AnswerFeedback]
    stage_number: Literal[2] = 2


@dataclass(slots=True)
class InterviewDetail:
    """Stage 3 call artifacts plus interview scores.

    Scores stay ``None`` when the call was recorded but could not be evaluated.
    """

    call_id: str | None
    transcript: str
    recording_url: str | None = None
    duration_seconds: int | None = None
    strengths: list[str] = field(default_factory=list)
    weaknesses: list[str] = field(default_factory=list)
    scores: dict[str, float] | None = None
    stage_number: Literal[3] = 3


StageDetail = Union[ResumeDetail, AnswerSetDetail, InterviewDetail]


@dataclass(slots=True)
class StageEvaluation:
    """Complete result of one successful stage evaluation."""

    stage_number: int
    matrix: EvaluationMatrix
    detail: StageDetail
    summary: str | None = None

    def __post_init__(self) -> None:
        if self.detail.stage_number != self.stage_number:
            raise ValueError(
                f"Stage {self.stage_number} evaluation cannot carry a "
                f"stage {self.detail.stage_number} detail"
            )

    @property
    def score(self) -> float:
        return self.matrix.overall_score


__all__ = [
    "AnswerFeedback",
    "AnswerSetDetail",
    "InterviewDetail",
    "ResumeDetail",
    "StageDetail",
    "StageEvaluation",
]
