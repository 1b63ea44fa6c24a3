"""Weighted multi-dimension evaluation matrix."""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Literal, Mapping

FitRating = Literal["high", "medium", "low"]

MAX_SCORE = 10
HIGH_FIT_FLOOR = 7.0
MEDIUM_FIT_FLOOR = 4.0


@dataclass(frozen=True, slots=True)
class DimensionSpec:
    """Stage-specific dimension: payload key, display name and weight."""

    key: str
    name: str
    weight: float


@dataclass(frozen=True, slots=True)
class WeightTable:
    """Ordered dimensions whose weights sum to 1.0."""

    dimensions: tuple[DimensionSpec, ...]

    def __post_init__(self) -> None:
        total = sum(dim.weight for dim in self.dimensions)
        if not math.isclose(total, 1.0, abs_tol=1e-9):
            raise ValueError(f"Dimension weights must sum to 1.0, got {total}")
        keys = [dim.key for dim in self.dimensions]
        if len(set(keys)) != len(keys):
            raise ValueError(f"Duplicate dimension keys: {keys}")

    @property
    def keys(self) -> tuple[str, ...]:
        return tuple(dim.key for dim in self.dimensions)

    def weights(self) -> dict[str, float]:
        return {dim.key: dim.weight for dim in self.dimensions}


RESUME_WEIGHTS = WeightTable(
    (
        DimensionSpec("skills", "Skills", 0.40),
        DimensionSpec("experience", "Experience", 0.35),
        DimensionSpec("education", "Education", 0.25),
    )
)

ANSWER_SET_WEIGHTS = WeightTable(
    (
        DimensionSpec("relevance", "Relevance", 0.40),
        DimensionSpec("clarity", "Clarity", 0.30),
        DimensionSpec("role_fit", "Role fit", 0.30),
    )
)

INTERVIEW_WEIGHTS = WeightTable(
    (
        DimensionSpec("communication", "Communication", 0.40),
        DimensionSpec("problem_solving", "Problem-solving", 0.35),
        DimensionSpec("role_understanding", "Role understanding", 0.25),
    )
)

STAGE_WEIGHTS: dict[int, WeightTable] = {
    1: RESUME_WEIGHTS,
    2: ANSWER_SET_WEIGHTS,
    3: INTERVIEW_WEIGHTS,
}


@dataclass(slots=True)
class Dimension:
    name: str
    score: float
    weight: float
    rationale: str = ""
    max_score: int = MAX_SCORE


@dataclass(slots=True)
class EvaluationMatrix:
    """Scored dimensions with their weighted overall score and fit bucket."""

    dimensions: list[Dimension]
    weights: dict[str, float]
    overall_score: float
    fit_rating: FitRating
    scores: dict[str, float] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        """Camel-cased shape persisted for audit and UI replay."""
        return {
            "dimensions": [
                {
                    "name": dim.name,
                    "score": dim.score,
                    "maxScore": dim.max_score,
                    "weight": dim.weight,
                    "rationale": dim.rationale,
                }
                for dim in self.dimensions
            ],
            "weights": dict(self.weights),
            "overallScore": self.overall_score,
            "fitRating": self.fit_rating,
        }

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def clamp_score(value: Any) -> float:
    """Force a raw dimension score into [0, 10]."""
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number):
        return 0.0
    return min(float(MAX_SCORE), max(0.0, number))


def round_score(value: float) -> float:
    """Round half-up to two decimals."""
    return float(Decimal(repr(value)).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP))


def fit_rating(overall_score: float) -> FitRating:
    if overall_score >= HIGH_FIT_FLOOR:
        return "high"
    if overall_score >= MEDIUM_FIT_FLOOR:
        return "medium"
    return "low"


def compute_matrix(
    table: WeightTable,
    scores: Mapping[str, Any],
    rationales: Mapping[str, str] | None = None,
    *,
    rationale_limit: int | None = None,
) -> EvaluationMatrix:
    """Clamp each dimension score, weigh it and bucket the result.

    Missing dimensions count as 0. Never raises on out-of-range scores.
    """
    rationales = rationales or {}
    dimensions: list[Dimension] = []
    clamped: dict[str, float] = {}
    total = 0.0
    for spec in table.dimensions:
        score = clamp_score(scores.get(spec.key))
        clamped[spec.key] = score
        total += spec.weight * score
        rationale = str(rationales.get(spec.key) or "")
        if rationale_limit is not None:
            rationale = rationale[:rationale_limit]
        dimensions.append(
            Dimension(name=spec.name, score=score, weight=spec.weight, rationale=rationale)
        )

    overall = min(float(MAX_SCORE), max(0.0, round_score(total)))
    return EvaluationMatrix(
        dimensions=dimensions,
        weights=table.weights(),
        overall_score=overall,
        fit_rating=fit_rating(overall),
        scores=clamped,
    )


__all__ = [
    "ANSWER_SET_WEIGHTS",
    "Dimension",
    "DimensionSpec",
    "EvaluationMatrix",
    "FitRating",
    "INTERVIEW_WEIGHTS",
    "RESUME_WEIGHTS",
    "STAGE_WEIGHTS",
    "WeightTable",
    "clamp_score",
    "compute_matrix",
    "fit_rating",
    "round_score",
]
