"\"\"\"Shared evaluator inputs and result validation.\"\"\""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from ...errors import EvaluatorError

ResultT = TypeVar("ResultT", bound=BaseModel)


@dataclass(slots=True)
class JobContext:
    """Job fields the evaluators put in front of the model."""

    title: str
    description: str = ""
    requirements: list[str] = field(default_factory=list)
    responsibilities: list[str] = field(default_factory=list)


def parse_result(model: type[ResultT], payload: Any, *, name: str) -> ResultT:
    """Validate a raw inference payload, turning schema drift into an evaluator error."""
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise EvaluatorError(f"{name}: inference result failed validation: {exc}") from exc


def score_schema(*keys: str, kind: str = "integer") -> dict[str, Any]:
    """Strict object schema with one required property per key."""
    return {
        "type": "object",
        "properties": {key: {"type": kind} for key in keys},
        "required": list(keys),
        "additionalProperties": False,
    }


__all__ = ["JobContext", "parse_result", "score_schema"]
