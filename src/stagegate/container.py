"\"\"\"Dependency injection container for the screening pipeline.\"\"\""

from __future__ import annotations

import os
from typing import Any

from dependency_injector import containers, providers

from .core.evaluators import (
    AnswerSetEvaluator,
    AnswerSetEvaluatorConfig,
    InterviewEvaluator,
    InterviewEvaluatorConfig,
    ResumeEvaluator,
    ResumeEvaluatorConfig,
)
from .core.gate import StageGate
from .db import DEFAULT_DATABASE_URL, build_engine, build_session_factory
from .dispatch import (
    DEFAULT_MAX_SUGGESTIONS,
    HrSuggestionWriter,
    LoggingMailer,
    LoggingOnboardingProvisioner,
    MailSettings,
    NotificationWriter,
    SendGridMailer,
    SideEffectDispatcher,
)
from .inference import DEFAULT_MODEL, DEFAULT_TIMEOUT_SECONDS, OpenAIInferenceClient
from .pipeline import ScreeningPipeline

DATABASE_URL_ENV = "STAGEGATE_DATABASE_URL"
OPENAI_API_KEY_ENV = "OPENAI_API_KEY"
SENDGRID_API_KEY_ENV = "SENDGRID_API_KEY"

_SECTIONS = ("database", "inference", "gate", "mail", "suggestions")


class StageGateContainer(containers.DeclarativeContainer):
    """Dependency-injector container definition."""

    config = providers.Configuration()

    engine = providers.Singleton(
        build_engine,
        url=config.database.url,
        echo=config.database.echo,
    )
    session_factory = providers.Singleton(build_session_factory, engine=engine)

    inference_client = providers.Singleton(
        OpenAIInferenceClient,
        api_key=config.inference.api_key,
        model=config.inference.model,
        timeout=config.inference.timeout_seconds,
    )

    resume_evaluator = providers.Singleton(ResumeEvaluator, client=inference_client)
    answer_evaluator = providers.Singleton(AnswerSetEvaluator, client=inference_client)
    interview_evaluator = providers.Singleton(InterviewEvaluator, client=inference_client)

    gate = providers.Singleton(StageGate, thresholds=config.gate.thresholds)

    mail_settings = providers.Singleton(
        MailSettings,
        from_email=config.mail.from_email,
        from_name=config.mail.from_name,
        app_name=config.mail.app_name,
    )
    mailer = providers.Singleton(LoggingMailer, settings=mail_settings)

    notification_writer = providers.Singleton(NotificationWriter)
    suggestion_writer = providers.Singleton(
        HrSuggestionWriter,
        max_per_failure=config.suggestions.max_per_failure,
    )
    onboarding = providers.Singleton(LoggingOnboardingProvisioner)

    dispatcher = providers.Singleton(
        SideEffectDispatcher,
        session_factory=session_factory,
        mailer=mailer,
        notifications=notification_writer,
        suggestions=suggestion_writer,
        onboarding=onboarding,
    )

    pipeline = providers.Factory(
        ScreeningPipeline,
        session_factory=session_factory,
        gate=gate,
        resume_evaluator=resume_evaluator,
        answer_evaluator=answer_evaluator,
        interview_evaluator=interview_evaluator,
        dispatcher=dispatcher,
    )


def default_settings() -> dict[str, Any]:
    return {
        "database": {"url": DEFAULT_DATABASE_URL, "echo": False},
        "inference": {
            "model": DEFAULT_MODEL,
            "timeout_seconds": DEFAULT_TIMEOUT_SECONDS,
            "api_key": os.environ.get(OPENAI_API_KEY_ENV),
        },
        "gate": {},
        "mail": {
            "sendgrid_api_key": os.environ.get(SENDGRID_API_KEY_ENV),
            "from_email": MailSettings.from_email,
            "from_name": MailSettings.from_name,
            "app_name": MailSettings.app_name,
        },
        "suggestions": {"max_per_failure": DEFAULT_MAX_SUGGESTIONS},
    }


def create_container(*, settings: dict | None = None) -> StageGateContainer:
    """Instantiate container with optional overrides."""

    container = StageGateContainer()
    container.config.from_dict(default_settings())

    settings = settings if isinstance(settings, dict) else {}
    overrides = {key: settings[key] for key in _SECTIONS if settings.get(key)}
    if overrides:
        container.config.from_dict(overrides)

    database_url = os.environ.get(DATABASE_URL_ENV)
    if database_url:
        container.config.from_dict({"database": {"url": database_url}})

    sendgrid_key = container.config.mail.sendgrid_api_key()
    if sendgrid_key:
        container.mailer.override(
            providers.Singleton(
                SendGridMailer,
                api_key=sendgrid_key,
                settings=container.mail_settings,
            )
        )

    evaluator_settings = settings.get("evaluators") or {}

    if "resume" in evaluator_settings:
        resume_config = ResumeEvaluatorConfig(**evaluator_settings["resume"])
        container.resume_evaluator.override(
            providers.Singleton(
                ResumeEvaluator, client=container.inference_client, config=resume_config
            )
        )

    if "answers" in evaluator_settings:
        answers_config = AnswerSetEvaluatorConfig(**evaluator_settings["answers"])
        container.answer_evaluator.override(
            providers.Singleton(
                AnswerSetEvaluator, client=container.inference_client, config=answers_config
            )
        )

    if "interview" in evaluator_settings:
        interview_config = InterviewEvaluatorConfig(**evaluator_settings["interview"])
        container.interview_evaluator.override(
            providers.Singleton(
                InterviewEvaluator, client=container.inference_client, config=interview_config
            )
        )

    return container
