"""Status vocabularies for applications and screening stage attempts."""

from __future__ import annotations

from enum import Enum
from typing import Literal

StageNumber = Literal[1, 2, 3]
OverrideAction = Literal["pass", "fail"]

STAGE_NUMBERS: tuple[int, ...] = (1, 2, 3)


class ApplicationStatus(str, Enum):
    """Lifecycle of a candidate's application to one job."""

    SUBMITTED = "submitted"
    STAGE1_PENDING = "stage1_pending"
    STAGE1_PASSED = "stage1_passed"
    STAGE1_FAILED = "stage1_failed"
    STAGE2_PENDING = "stage2_pending"
    STAGE2_PASSED = "stage2_passed"
    STAGE2_FAILED = "stage2_failed"
    STAGE3_PENDING = "stage3_pending"
    STAGE3_PASSED = "stage3_passed"
    STAGE3_FAILED = "stage3_failed"
    HIRED = "hired"
    REJECTED = "rejected"
    WITHDRAWN = "withdrawn"

    @classmethod
    def passed(cls, stage_number: int) -> "ApplicationStatus":
        return cls(f"stage{_checked(stage_number)}_passed")

    @classmethod
    def failed(cls, stage_number: int) -> "ApplicationStatus":
        return cls(f"stage{_checked(stage_number)}_failed")

    @classmethod
    def pending(cls, stage_number: int) -> "ApplicationStatus":
        return cls(f"stage{_checked(stage_number)}_pending")

    @property
    def is_closed(self) -> bool:
        return self in _CLOSED

    @property
    def stage_number(self) -> int | None:
        if self.value.startswith("stage"):
            return int(self.value[5])
        return None


_CLOSED = frozenset(
    {ApplicationStatus.HIRED, ApplicationStatus.REJECTED, ApplicationStatus.WITHDRAWN}
)


class StageStatus(str, Enum):
    """Lifecycle of a single screening stage attempt."""

    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StageStatus.COMPLETED, StageStatus.FAILED, StageStatus.SKIPPED)


# Allowed attempt transitions; anything else is an invalid stage transition.
STAGE_TRANSITIONS: dict[StageStatus, frozenset[StageStatus]] = {
    StageStatus.PENDING: frozenset({StageStatus.IN_PROGRESS}),
    StageStatus.IN_PROGRESS: frozenset(
        {StageStatus.COMPLETED, StageStatus.FAILED, StageStatus.SKIPPED}
    ),
    StageStatus.COMPLETED: frozenset(),
    StageStatus.FAILED: frozenset(),
    StageStatus.SKIPPED: frozenset(),
}

STAGE_LABELS: dict[int, str] = {
    1: "resume screening",
    2: "questions",
    3: "voice interview",
}


def stage_label(stage_number: int) -> str:
    """Human-readable stage name used in messages and emails."""
    return STAGE_LABELS[_checked(stage_number)]


def _checked(stage_number: int) -> int:
    if stage_number not in STAGE_NUMBERS:
        raise ValueError(f"Unknown stage number: {stage_number!r}")
    return int(stage_number)


__all__ = [
    "ApplicationStatus",
    "OverrideAction",
    "STAGE_LABELS",
    "STAGE_NUMBERS",
    "STAGE_TRANSITIONS",
    "StageNumber",
    "StageStatus",
    "stage_label",
]
