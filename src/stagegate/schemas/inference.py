"""Validated shapes of structured inference results."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class _InferenceModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class SkillsMatch(_InferenceModel):
    required: list[str] = Field(default_factory=list)
    found: list[str] = Field(default_factory=list)
    missing: list[str] = Field(default_factory=list)


class ExperienceMatch(_InferenceModel):
    required: str = ""
    found: str = ""
    match: bool = False


class ResumeDimensionScores(_InferenceModel):
    skills: float
    experience: float
    education: float


class ResumeDimensionRationales(_InferenceModel):
    skills: str = ""
    experience: str = ""
    education: str = ""


class ResumeEvaluationResult(_InferenceModel):
    """Stage 1 matrix evaluation of a resume against a job."""

    dimension_scores: ResumeDimensionScores = Field(alias="dimensionScores")
    dimension_rationales: ResumeDimensionRationales = Field(
        alias="dimensionRationales", default_factory=ResumeDimensionRationales
    )
    skills_match: SkillsMatch = Field(alias="skillsMatch", default_factory=SkillsMatch)
    experience_match: ExperienceMatch = Field(
        alias="experienceMatch", default_factory=ExperienceMatch
    )
    gaps: list[str] = Field(default_factory=list)
    summary: str = ""


class AnswerEvaluation(_InferenceModel):
    score: float
    feedback: str = ""


class AnswerEvaluationResult(_InferenceModel):
    """Per-answer scores, in question order, plus an HR summary."""

    evaluations: list[AnswerEvaluation]
    summary: str = ""


class AnswerSetDimensionScores(_InferenceModel):
    relevance: float
    clarity: float
    role_fit: float


class AnswerSetDimensionRationales(_InferenceModel):
    relevance: str = ""
    clarity: str = ""
    role_fit: str = ""


class AnswerSetMatrixResult(_InferenceModel):
    dimension_scores: AnswerSetDimensionScores = Field(alias="dimensionScores")
    dimension_rationales: AnswerSetDimensionRationales = Field(
        alias="dimensionRationales", default_factory=AnswerSetDimensionRationales
    )


class InterviewEvaluationResult(_InferenceModel):
    """Stage 3 scores and observations for an interview transcript."""

    communication_score: float = Field(alias="communicationScore")
    problem_solving_score: float = Field(alias="problemSolvingScore")
    role_understanding_score: float = Field(alias="roleUnderstandingScore")
    communication_rationale: str = Field(alias="communicationRationale", default="")
    problem_solving_rationale: str = Field(alias="problemSolvingRationale", default="")
    role_understanding_rationale: str = Field(alias="roleUnderstandingRationale", default="")
    strengths: list[str] = Field(default_factory=list)
    weaknesses: list[str] = Field(default_factory=list)
