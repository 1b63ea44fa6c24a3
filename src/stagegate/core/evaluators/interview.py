"\"\"\"Stage 3: voice interview transcript evaluation.\"\"\""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from ...errors import InputMissingError
from ...inference import InferenceClient
from ...schemas.inference import InterviewEvaluationResult
from ..matrix import INTERVIEW_WEIGHTS, compute_matrix
from ..results import InterviewDetail, StageEvaluation
from .base import JobContext, parse_result

_SCORE_FIELDS = ("communicationScore", "problemSolvingScore", "roleUnderstandingScore")
_RATIONALE_FIELDS = (
    "communicationRationale",
    "problemSolvingRationale",
    "roleUnderstandingRationale",
)

INTERVIEW_SCHEMA = {
    "type": "object",
    "properties": {
        **{name: {"type": "number"} for name in _SCORE_FIELDS},
        **{name: {"type": "string"} for name in _RATIONALE_FIELDS},
        "strengths": {"type": "array", "items": {"type": "string"}},
        "weaknesses": {"type": "array", "items": {"type": "string"}},
    },
    "required": [*_SCORE_FIELDS, *_RATIONALE_FIELDS, "strengths", "weaknesses"],
    "additionalProperties": False,
}

SYSTEM_PROMPT = """You are an HR screening expert. Evaluate a voice interview transcript.

Score the candidate on three dimensions (each 0-10) and provide a short rationale for each:
1. Communication: Clarity, structure, and professionalism of responses.
2. Problem-solving: How they approach questions, give examples, and reason.
3. Role understanding: Alignment with the job and awareness of the role.

Be objective. Do not analyze tone, accent, or personality. Focus on content.
Return: communicationScore, problemSolvingScore, roleUnderstandingScore (0-10), communicationRationale, problemSolvingRationale, roleUnderstandingRationale (short strings), strengths (array of short strings), weaknesses (array of short strings)."""


@dataclass
class InterviewEvaluatorConfig:
    """Prompt and payload budgets for interview evaluation."""

    description_chars: int = 600
    transcript_chars: int = 12000
    rationale_chars: int = 500


@dataclass(slots=True)
class CallArtifacts:
    """What the voice provider reports about a finished call."""

    transcript: str
    call_id: str | None = None
    recording_url: str | None = None
    duration_seconds: int | None = None

    def detail(self) -> InterviewDetail:
        """Call artifacts without scores, kept even when evaluation fails."""
        return InterviewDetail(
            call_id=self.call_id,
            transcript=self.transcript,
            recording_url=self.recording_url,
            duration_seconds=self.duration_seconds,
        )


class InterviewEvaluator:
    """Score an interview transcript on communication, problem-solving and role understanding."""

    method = "interview"
    stage_number = 3

    def __init__(
        self,
        *,
        client: InferenceClient,
        config: InterviewEvaluatorConfig | None = None,
    ) -> None:
        self._client = client
        self._config = config or InterviewEvaluatorConfig()
        self._logger = structlog.get_logger(__name__)

    def evaluate(self, call: CallArtifacts, job: JobContext) -> StageEvaluation:
        if not call.transcript.strip():
            raise InputMissingError("No interview transcript")

        raw = self._client.evaluate(
            name="stage3_evaluation",
            system_prompt=SYSTEM_PROMPT,
            user_prompt=(
                f"Job: {job.title}\n"
                f"Description: {job.description[: self._config.description_chars]}\n\n"
                f"Interview transcript:\n{call.transcript[: self._config.transcript_chars]}"
            ),
            schema=INTERVIEW_SCHEMA,
        )
        result = parse_result(InterviewEvaluationResult, raw, name="stage3_evaluation")

        matrix = compute_matrix(
            INTERVIEW_WEIGHTS,
            {
                "communication": result.communication_score,
                "problem_solving": result.problem_solving_score,
                "role_understanding": result.role_understanding_score,
            },
            {
                "communication": result.communication_rationale,
                "problem_solving": result.problem_solving_rationale,
                "role_understanding": result.role_understanding_rationale,
            },
            rationale_limit=self._config.rationale_chars,
        )
        detail = call.detail()
        detail.strengths = list(result.strengths)
        detail.weaknesses = list(result.weaknesses)
        detail.scores = dict(matrix.scores)
        self._logger.debug("stage3.evaluated", overall_score=matrix.overall_score)
        return StageEvaluation(stage_number=3, matrix=matrix, detail=detail)
