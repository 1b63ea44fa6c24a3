"""Persistence layer for the screening pipeline."""

from __future__ import annotations

from .models import (
    Application,
    Base,
    Candidate,
    HrCandidateSuggestion,
    InterviewRecord,
    Job,
    Notification,
    ResumeAnalysis,
    ScreeningStage,
    Stage2Answer,
    Stage2Question,
    utcnow,
)
from .session import DEFAULT_DATABASE_URL, build_engine, build_session_factory, init_db

__all__ = [
    "Application",
    "Base",
    "Candidate",
    "DEFAULT_DATABASE_URL",
    "HrCandidateSuggestion",
    "InterviewRecord",
    "Job",
    "Notification",
    "ResumeAnalysis",
    "ScreeningStage",
    "Stage2Answer",
    "Stage2Question",
    "build_engine",
    "build_session_factory",
    "init_db",
    "utcnow",
]
