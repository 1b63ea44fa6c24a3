"\"\"\"Pydantic schemas for inference results, inbound events and configuration.\"\"\""

from __future__ import annotations

from .config import AppConfig, load_config
from .events import AnswerSubmission, EndOfCallEvent, OverrideCommand
from .inference import (
    AnswerEvaluation,
    AnswerEvaluationResult,
    AnswerSetMatrixResult,
    ExperienceMatch,
    InterviewEvaluationResult,
    ResumeEvaluationResult,
    SkillsMatch,
)

__all__ = [
    "AnswerEvaluation",
    "AnswerEvaluationResult",
    "AnswerSetMatrixResult",
    "AnswerSubmission",
    "AppConfig",
    "EndOfCallEvent",
    "ExperienceMatch",
    "InterviewEvaluationResult",
    "OverrideCommand",
    "ResumeEvaluationResult",
    "SkillsMatch",
    "load_config",
]
