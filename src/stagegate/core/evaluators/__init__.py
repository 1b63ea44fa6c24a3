"\"\"\"Stage evaluator implementations.\"\"\""

from .answers import AnsweredQuestion, AnswerSetEvaluator, AnswerSetEvaluatorConfig
from .base import JobContext
from .interview import CallArtifacts, InterviewEvaluator, InterviewEvaluatorConfig
from .resume import ResumeEvaluator, ResumeEvaluatorConfig

__all__ = [
    "AnswerSetEvaluator",
    "AnswerSetEvaluatorConfig",
    "AnsweredQuestion",
    "CallArtifacts",
    "InterviewEvaluator",
    "InterviewEvaluatorConfig",
    "JobContext",
    "ResumeEvaluator",
    "ResumeEvaluatorConfig",
]
