from __future__ import annotations

import pytest
from sqlalchemy import func, inspect, select
from sqlalchemy.exc import IntegrityError

from stagegate.core.status import ApplicationStatus, StageStatus
from stagegate.db import (
    Application,
    InterviewRecord,
    ScreeningStage,
    build_engine,
    init_db,
)


def test_init_db_creates_tables():
    engine = build_engine("sqlite://")
    init_db(engine)

    tables = set(inspect(engine).get_table_names())
    assert {
        "candidates",
        "jobs",
        "applications",
        "screening_stages",
        "resume_analyses",
        "stage2_questions",
        "stage2_answers",
        "interview_details",
        "notifications",
        "hr_candidate_suggestions",
    } <= tables


def test_application_defaults(session_factory, seed):
    ids = seed()
    with session_factory() as session:
        application = session.get(Application, ids["application_id"])
        assert application.status is ApplicationStatus.SUBMITTED
        assert application.current_stage is None
        assert application.overall_score is None
        assert application.job.questions[0].question_order == 1
        assert application.job.status == "active"


def test_attempt_numbers_are_unique_per_stage(session_factory, seed):
    ids = seed()
    with pytest.raises(IntegrityError):
        with session_factory.begin() as session:
            session.add_all(
                [
                    ScreeningStage(application_id=ids["application_id"], stage_number=1, attempt=1),
                    ScreeningStage(application_id=ids["application_id"], stage_number=1, attempt=1),
                ]
            )


def test_move_to_sets_timestamps(session_factory, seed):
    ids = seed()
    with session_factory.begin() as session:
        stage = ScreeningStage(application_id=ids["application_id"], stage_number=3, attempt=1)
        stage.interview = InterviewRecord(assistant_id="asst-1")
        session.add(stage)
        session.flush()

        assert stage.status is StageStatus.PENDING
        stage.move_to(StageStatus.IN_PROGRESS)
        assert stage.started_at is not None
        assert stage.completed_at is None
        stage.move_to(StageStatus.SKIPPED)
        assert stage.completed_at is not None
        assert stage.interview.screening_stage_id == stage.id


def test_deleting_application_cascades_to_attempts(session_factory, seed):
    ids = seed()
    with session_factory.begin() as session:
        session.add(ScreeningStage(application_id=ids["application_id"], stage_number=1, attempt=1))

    with session_factory.begin() as session:
        session.delete(session.get(Application, ids["application_id"]))

    with session_factory() as session:
        assert session.scalar(select(func.count()).select_from(ScreeningStage)) == 0
