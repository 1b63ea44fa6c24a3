"""Exception taxonomy for the screening pipeline."""

from __future__ import annotations


class StageGateError(Exception):
    """Base class for pipeline errors."""


class InputMissingError(StageGateError):
    """Raised when a stage cannot start because its input is absent."""


class EvaluatorError(StageGateError):
    """Raised when an evaluator cannot produce a usable result."""


class InferenceError(EvaluatorError):
    """Raised when the inference collaborator fails, times out or returns garbage."""


class ResolutionError(StageGateError):
    """Raised when an inbound event cannot be mapped to an application."""


class ApplicationNotFound(StageGateError):
    """Raised when a caller references an unknown application."""

    def __init__(self, application_id: str):
        super().__init__(f"Application not found: {application_id!r}")
        self.application_id = application_id


class InvalidStageTransition(StageGateError):
    """Raised when a screening stage attempt is moved outside its lifecycle."""


class GuardViolation(StageGateError):
    """Raised when a transition is requested from a disallowed status."""

    def __init__(
        self,
        message: str,
        *,
        application_id: str | None = None,
        current_status: str | None = None,
        action: str | None = None,
        stage_number: int | None = None,
    ):
        super().__init__(message)
        self.application_id = application_id
        self.current_status = current_status
        self.action = action
        self.stage_number = stage_number


class DeliveryError(StageGateError):
    """Raised when an outbound message is rejected by its provider."""


class IncompleteAnswersError(GuardViolation):
    """Raised when a Stage 2 submission does not cover every question exactly once."""


__all__ = [
    "ApplicationNotFound",
    "DeliveryError",
    "EvaluatorError",
    "GuardViolation",
    "IncompleteAnswersError",
    "InferenceError",
    "InputMissingError",
    "InvalidStageTransition",
    "ResolutionError",
    "StageGateError",
]
