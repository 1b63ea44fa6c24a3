"""Inference collaborator contract and the OpenAI structured-output client."""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

import openai
import structlog
from openai import OpenAI

from .errors import InferenceError

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_TIMEOUT_SECONDS = 60.0


@runtime_checkable
class InferenceClient(Protocol):
    """Returns a JSON object matching ``schema`` or raises ``InferenceError``."""

    def evaluate(
        self,
        *,
        name: str,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any],
    ) -> dict[str, Any]:
        ...


class OpenAIInferenceClient:
    """Chat completions with a strict ``json_schema`` response format."""

    def __init__(
        self,
        api_key: str | None = None,
        *,
        model: str | None = None,
        timeout: float | None = None,
        client: OpenAI | None = None,
    ) -> None:
        self._model = model or DEFAULT_MODEL
        self._timeout = float(timeout or DEFAULT_TIMEOUT_SECONDS)
        if client is not None:
            self._client = client
        else:
            self._client = OpenAI(api_key=api_key, timeout=self._timeout) if api_key else None
        self._logger = structlog.get_logger(__name__)

    @property
    def model(self) -> str:
        return self._model

    def evaluate(
        self,
        *,
        name: str,
        system_prompt: str,
        user_prompt: str,
        schema: dict[str, Any],
    ) -> dict[str, Any]:
        if self._client is None:
            raise InferenceError(f"{name}: no inference API key configured")

        try:
            response = self._client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                response_format={
                    "type": "json_schema",
                    "json_schema": {"name": name, "strict": True, "schema": schema},
                },
                timeout=self._timeout,
            )
        except openai.APITimeoutError as exc:
            raise InferenceError(f"{name}: inference timed out after {self._timeout}s") from exc
        except openai.OpenAIError as exc:
            raise InferenceError(f"{name}: inference call failed: {exc}") from exc

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise InferenceError(f"{name}: empty inference response")
        try:
            payload = json.loads(content)
        except json.JSONDecodeError as exc:
            raise InferenceError(f"{name}: invalid JSON from inference: {content[:200]}") from exc
        if not isinstance(payload, dict):
            raise InferenceError(f"{name}: inference result must be a JSON object")

        self._logger.debug("inference.completed", name=name, model=self._model)
        return payload


__all__ = ["DEFAULT_MODEL", "DEFAULT_TIMEOUT_SECONDS", "InferenceClient", "OpenAIInferenceClient"]
