"\"\"\"Pydantic configuration schema for CLI YAML input.\"\"\""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DatabaseConfig(BaseModel):
    url: str | None = None
    echo: bool = False

    model_config = ConfigDict(extra="forbid")


class InferenceConfig(BaseModel):
    model: str | None = None
    timeout_seconds: float | None = Field(default=None, gt=0)
    api_key: str | None = None

    model_config = ConfigDict(extra="forbid")


class GateConfig(BaseModel):
    thresholds: dict[int, float] | None = None

    model_config = ConfigDict(extra="forbid")

    @field_validator("thresholds")
    @classmethod
    def _known_stages(cls, value: dict[int, float] | None) -> dict[int, float] | None:
        if value is None:
            return value
        unknown = sorted(set(value) - {1, 2, 3})
        if unknown:
            raise ValueError(f"thresholds only accept stages 1, 2 and 3, got {unknown}")
        for stage, threshold in value.items():
            if not 0 <= threshold <= 10:
                raise ValueError(f"threshold for stage {stage} must be within 0-10")
        return value


class EvaluatorConfig(BaseModel):
    resume: dict[str, Any] | None = None
    answers: dict[str, Any] | None = None
    interview: dict[str, Any] | None = None

    model_config = ConfigDict(extra="forbid")


class MailConfig(BaseModel):
    sendgrid_api_key: str | None = None
    from_email: str | None = None
    from_name: str | None = None
    app_name: str | None = None

    model_config = ConfigDict(extra="forbid")


class SuggestionConfig(BaseModel):
    max_per_failure: int | None = Field(default=None, ge=0)

    model_config = ConfigDict(extra="forbid")


class AppConfig(BaseModel):
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    inference: InferenceConfig = Field(default_factory=InferenceConfig)
    gate: GateConfig = Field(default_factory=GateConfig)
    evaluators: EvaluatorConfig = Field(default_factory=EvaluatorConfig)
    mail: MailConfig = Field(default_factory=MailConfig)
    suggestions: SuggestionConfig = Field(default_factory=SuggestionConfig)

    model_config = ConfigDict(extra="forbid")

    def to_settings(self) -> dict[str, Any]:
        """Nested settings dict for ``create_container``, without unset values."""
        settings: dict[str, Any] = {}
        for section in ("database", "inference", "gate", "evaluators", "mail", "suggestions"):
            values = getattr(self, section).model_dump(exclude_none=True)
            if section == "database" and not values.get("echo"):
                values.pop("echo", None)
            if values:
                settings[section] = values
        return settings


def load_config(raw: Any) -> AppConfig:
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise TypeError("Config must be a mapping")
    return AppConfig.model_validate(raw)
