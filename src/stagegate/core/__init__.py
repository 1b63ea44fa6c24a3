"\"\"\"Scoring and gating core.\"\"\""

from __future__ import annotations

# NOTE: the gate imports the ORM models, so it is imported from .gate directly.
from .matrix import (
    ANSWER_SET_WEIGHTS,
    INTERVIEW_WEIGHTS,
    RESUME_WEIGHTS,
    STAGE_WEIGHTS,
    EvaluationMatrix,
    WeightTable,
    compute_matrix,
    fit_rating,
)
from .results import (
    AnswerFeedback,
    AnswerSetDetail,
    InterviewDetail,
    ResumeDetail,
    StageDetail,
    StageEvaluation,
)
from .status import ApplicationStatus, StageStatus, stage_label

__all__ = [
    "ANSWER_SET_WEIGHTS",
    "AnswerFeedback",
    "AnswerSetDetail",
    "ApplicationStatus",
    "EvaluationMatrix",
    "INTERVIEW_WEIGHTS",
    "InterviewDetail",
    "RESUME_WEIGHTS",
    "ResumeDetail",
    "STAGE_WEIGHTS",
    "StageDetail",
    "StageEvaluation",
    "StageStatus",
    "WeightTable",
    "compute_matrix",
    "fit_rating",
    "stage_label",
]
