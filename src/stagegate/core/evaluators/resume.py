"\"\"\"Stage 1: resume evaluation against the job.\"\"\""

from __future__ import annotations

import json
from dataclasses import dataclass

import structlog

from ...errors import InputMissingError
from ...inference import InferenceClient
from ...schemas.inference import ResumeEvaluationResult
from ..matrix import RESUME_WEIGHTS, compute_matrix
from ..results import ResumeDetail, StageEvaluation
from .base import JobContext, parse_result, score_schema

_STRING_LIST = {"type": "array", "items": {"type": "string"}}

RESUME_MATRIX_SCHEMA = {
    "type": "object",
    "properties": {
        "dimensionScores": score_schema("skills", "experience", "education"),
        "dimensionRationales": score_schema("skills", "experience", "education", kind="string"),
        "skillsMatch": {
            "type": "object",
            "properties": {
                "required": _STRING_LIST,
                "found": _STRING_LIST,
                "missing": _STRING_LIST,
            },
            "required": ["required", "found", "missing"],
            "additionalProperties": False,
        },
        "experienceMatch": {
            "type": "object",
            "properties": {
                "required": {"type": "string"},
                "found": {"type": "string"},
                "match": {"type": "boolean"},
            },
            "required": ["required", "found", "match"],
            "additionalProperties": False,
        },
        "gaps": _STRING_LIST,
        "summary": {"type": "string"},
    },
    "required": [
        "dimensionScores",
        "dimensionRationales",
        "skillsMatch",
        "experienceMatch",
        "gaps",
        "summary",
    ],
    "additionalProperties": False,
}

SYSTEM_PROMPT = """You are a structured resume evaluator. Score the candidate against the job on three dimensions (each 0-10). Be consistent and fair.

RULES:
1. dimensionScores: Give an integer 0-10 for each dimension.
   - skills: How well do resume skills match job requirements? 10 = all key skills present, 0 = none.
   - experience: How relevant is work history to the role? Consider years and relevance. 10 = ideal match, 0 = no relevant experience.
   - education: How well does education match job requirements? 10 = strong match, 0 = no relevant education.

2. dimensionRationales: One short sentence per dimension explaining the score (for HR to read).

3. skillsMatch: Use KEYWORDS ONLY, short skill/tech names (e.g. "python", "react", "sql"). Do NOT put full requirement sentences in required or missing.
   - required: Extract 5-15 key skill keywords from the job.
   - found: Skills from the resume that match or relate to job requirements.
   - missing: Required job skills not clearly present in the resume.

4. experienceMatch: required = brief description of what the job asks; found = what the resume shows; match = true if experience is relevant.

5. gaps: 1-3 short clarification items. summary: One line for HR (no score)."""

# Education counts as a strength from this dimension score up.
EDUCATION_STRENGTH_FLOOR = 5.0


@dataclass
class ResumeEvaluatorConfig:
    """Prompt budgets for resume evaluation."""

    resume_chars: int = 15000
    description_chars: int = 1500


class ResumeEvaluator:
    """Score a resume on skills, experience and education."""

    method = "resume"
    stage_number = 1

    def __init__(
        self,
        *,
        client: InferenceClient,
        config: ResumeEvaluatorConfig | None = None,
    ) -> None:
        self._client = client
        self._config = config or ResumeEvaluatorConfig()
        self._logger = structlog.get_logger(__name__)

    def evaluate(self, resume_text: str | None, job: JobContext) -> StageEvaluation:
        resume = (resume_text or "").strip()
        if not resume:
            raise InputMissingError("No resume text")

        raw = self._client.evaluate(
            name="evaluation_matrix",
            system_prompt=SYSTEM_PROMPT,
            user_prompt=self._user_prompt(resume, job),
            schema=RESUME_MATRIX_SCHEMA,
        )
        result = parse_result(ResumeEvaluationResult, raw, name="evaluation_matrix")

        matrix = compute_matrix(
            RESUME_WEIGHTS,
            result.dimension_scores.model_dump(),
            result.dimension_rationales.model_dump(),
        )
        detail = ResumeDetail(
            skills_match=result.skills_match.model_dump(),
            experience_match=result.experience_match.model_dump(),
            strengths=self._strengths(result, matrix.scores["education"]),
            concerns=self._concerns(result),
        )
        self._logger.debug(
            "stage1.evaluated",
            overall_score=matrix.overall_score,
            fit_rating=matrix.fit_rating,
        )
        return StageEvaluation(
            stage_number=1,
            matrix=matrix,
            detail=detail,
            summary=result.summary or None,
        )

    def _user_prompt(self, resume: str, job: JobContext) -> str:
        return (
            f"Job: {job.title}\n"
            f"Description: {job.description[: self._config.description_chars]}\n"
            f"Requirements: {json.dumps(job.requirements, ensure_ascii=False)}\n"
            f"Responsibilities: {json.dumps(job.responsibilities, ensure_ascii=False)}\n\n"
            f"Resume:\n{resume[: self._config.resume_chars]}"
        )

    @staticmethod
    def _strengths(result: ResumeEvaluationResult, education_score: float) -> list[str]:
        strengths: list[str] = []
        if result.skills_match.found:
            strengths.append(f"Skills: {', '.join(result.skills_match.found)}")
        if result.experience_match.match:
            strengths.append(f"Experience: {result.experience_match.found}")
        if education_score >= EDUCATION_STRENGTH_FLOOR:
            strengths.append(f"Education: {result.dimension_rationales.education}")
        return strengths or ["Resume submitted"]

    @staticmethod
    def _concerns(result: ResumeEvaluationResult) -> list[str]:
        concerns: list[str] = []
        if result.skills_match.missing:
            concerns.append(f"Missing skills: {', '.join(result.skills_match.missing)}")
        concerns.extend(gap for gap in result.gaps if gap)
        return concerns
