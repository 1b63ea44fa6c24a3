"\"\"\"Stage 2: written answers to the job's screening questions.\"\"\""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Sequence

import structlog

from ...errors import EvaluatorError, InputMissingError
from ...inference import InferenceClient
from ...schemas.inference import AnswerEvaluationResult, AnswerSetMatrixResult
from ..matrix import ANSWER_SET_WEIGHTS, clamp_score, compute_matrix
from ..results import AnswerFeedback, AnswerSetDetail, StageEvaluation
from .base import JobContext, parse_result, score_schema

MATRIX_SCHEMA = {
    "type": "object",
    "properties": {
        "dimensionScores": score_schema("relevance", "clarity", "role_fit"),
        "dimensionRationales": score_schema("relevance", "clarity", "role_fit", kind="string"),
    },
    "required": ["dimensionScores", "dimensionRationales"],
    "additionalProperties": False,
}

MATRIX_SYSTEM_PROMPT = """You are an HR screening expert. Score the candidate's Stage 2 written answers on three dimensions (each 0-10). Be consistent and fair.

Dimensions:
1. Relevance: Do the answers directly address the questions? Are they on-topic and substantive?
2. Clarity: Is the communication clear, structured, and professional?
3. Role fit: Do the answers show alignment with the job requirements and company context?

Return a JSON object with dimensionScores (relevance, clarity, role_fit as integers 0-10) and dimensionRationales (one short sentence per dimension explaining the score)."""


def build_answer_schema(count: int) -> dict[str, Any]:
    """Per-answer schema pinned to exactly ``count`` evaluations."""
    return {
        "type": "object",
        "properties": {
            "evaluations": {
                "type": "array",
                "items": {
                    "type": "object",
                    "properties": {
                        "score": {"type": "integer"},
                        "feedback": {"type": "string"},
                    },
                    "required": ["score", "feedback"],
                    "additionalProperties": False,
                },
                "minItems": count,
                "maxItems": count,
            },
            "summary": {"type": "string"},
        },
        "required": ["evaluations", "summary"],
        "additionalProperties": False,
    }


@dataclass(slots=True)
class AnsweredQuestion:
    answer_id: str
    question: str
    answer: str


@dataclass
class AnswerSetEvaluatorConfig:
    """Prompt budgets for answer evaluation."""

    description_chars: int = 1500
    matrix_description_chars: int = 1200
    qa_block_chars: int = 4000


class AnswerSetEvaluator:
    """Score each answer, then the answer set as a whole.

    The per-answer scores are shown to the matrix call as context only; the
    stage score comes from the answer-set dimensions.
    """

    method = "answers"
    stage_number = 2

    def __init__(
        self,
        *,
        client: InferenceClient,
        config: AnswerSetEvaluatorConfig | None = None,
    ) -> None:
        self._client = client
        self._config = config or AnswerSetEvaluatorConfig()
        self._logger = structlog.get_logger(__name__)

    def evaluate(self, answers: Sequence[AnsweredQuestion], job: JobContext) -> StageEvaluation:
        if not answers:
            raise InputMissingError("No answers to evaluate")

        per_answer = self._evaluate_answers(answers, job)
        if len(per_answer.evaluations) != len(answers):
            raise EvaluatorError(
                f"Evaluation count mismatch: expected {len(answers)}, "
                f"got {len(per_answer.evaluations)}"
            )

        feedback = [
            AnswerFeedback(
                answer_id=item.answer_id,
                score=clamp_score(evaluation.score),
                feedback=evaluation.feedback or None,
            )
            for item, evaluation in zip(answers, per_answer.evaluations)
        ]

        raw = self._client.evaluate(
            name="stage2_matrix",
            system_prompt=MATRIX_SYSTEM_PROMPT,
            user_prompt=self._matrix_prompt(answers, [f.score for f in feedback], job),
            schema=MATRIX_SCHEMA,
        )
        result = parse_result(AnswerSetMatrixResult, raw, name="stage2_matrix")
        matrix = compute_matrix(
            ANSWER_SET_WEIGHTS,
            result.dimension_scores.model_dump(),
            result.dimension_rationales.model_dump(),
        )
        self._logger.debug(
            "stage2.evaluated",
            answer_count=len(answers),
            overall_score=matrix.overall_score,
        )
        return StageEvaluation(
            stage_number=2,
            matrix=matrix,
            detail=AnswerSetDetail(answers=feedback),
            summary=per_answer.summary or None,
        )

    def _evaluate_answers(
        self, answers: Sequence[AnsweredQuestion], job: JobContext
    ) -> AnswerEvaluationResult:
        count = len(answers)
        system_prompt = (
            "You are an HR screening assistant. Evaluate each candidate answer to a screening question.\n"
            "Score each answer 0-10 for: relevance to the question, clarity, and fit for the role.\n"
            "Be fair and objective. Provide one short sentence of feedback per answer.\n"
            f"You must return exactly {count} evaluations, one for each Q&A pair, in the same order as the pairs.\n"
            "Then provide a brief overall summary (2-3 sentences) for HR."
        )
        user_prompt = (
            f"Job: {job.title}\n"
            f"Description: {job.description[: self._config.description_chars]}\n"
            f"Requirements: {json.dumps(job.requirements, ensure_ascii=False)}\n\n"
            f"Evaluate these {count} Q&A pairs. Return exactly {count} evaluations in the same "
            "order (evaluation 1 for Q1/A1, evaluation 2 for Q2/A2, etc.).\n\n"
            f"{qa_block(answers)}"
        )
        raw = self._client.evaluate(
            name="stage2_evaluation",
            system_prompt=system_prompt,
            user_prompt=user_prompt,
            schema=build_answer_schema(count),
        )
        return parse_result(AnswerEvaluationResult, raw, name="stage2_evaluation")

    def _matrix_prompt(
        self,
        answers: Sequence[AnsweredQuestion],
        scores: list[float],
        job: JobContext,
    ) -> str:
        return (
            f"Job: {job.title}\n"
            f"Description: {job.description[: self._config.matrix_description_chars]}\n"
            f"Requirements: {json.dumps(job.requirements, ensure_ascii=False)}\n\n"
            "Candidate Q&A and per-answer scores (for context): "
            f"{', '.join(f'{score:g}' for score in scores)}\n\n"
            f"Q&A:\n{qa_block(answers)[: self._config.qa_block_chars]}\n\n"
            "Score each dimension 0-10 and provide a short rationale per dimension."
        )


def qa_block(answers: Sequence[AnsweredQuestion]) -> str:
    return "\n\n".join(
        f"Q{idx}: {item.question}\nA{idx}: {item.answer}"
        for idx, item in enumerate(answers, start=1)
    )
