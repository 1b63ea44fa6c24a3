"""Inbound events and commands accepted by the pipeline."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class EndOfCallEvent(BaseModel):
    """A finished voice interview, keyed by the interview assistant."""

    assistant_id: str = Field(alias="assistantId", min_length=1)
    call_id: str = Field(alias="callId", default="")
    transcript: str = Field(min_length=1)
    recording_url: str | None = Field(alias="recordingUrl", default=None)
    duration_seconds: int | None = Field(alias="durationSeconds", default=None, ge=0)

    model_config = ConfigDict(extra="forbid", populate_by_name=True)


class OverrideCommand(BaseModel):
    """HR verdict forced onto one stage of an application."""

    application_id: str
    action: Literal["pass", "fail"]
    stage: Literal[1, 2, 3]

    model_config = ConfigDict(extra="forbid")


class AnswerSubmission(BaseModel):
    question_id: str
    answer_text: str

    model_config = ConfigDict(extra="forbid")

    @field_validator("answer_text")
    @classmethod
    def _strip(cls, value: str) -> str:
        return value.strip()
