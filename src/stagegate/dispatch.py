"\"\"\"Side effects fired after a stage outcome is committed.\"\"\""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Protocol, runtime_checkable

import structlog
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from .core.gate import StageOutcome
from .core.status import stage_label
from .db import Application, HrCandidateSuggestion, Job, Notification
from .errors import DeliveryError

NOTIFICATION_LINK = "/my-applications"
PASSED_TITLE = "You advanced to the next stage"
FAILED_TITLE = "Update on your application"
HIRED_TITLE = "You're hired!"
DEFAULT_MAX_SUGGESTIONS = 5

# Wording used inside candidate-facing sentences.
_MESSAGE_LABELS: dict[int, str] = {
    1: "resume screening",
    2: "questions",
    3: "the voice interview",
}


def stage_message(stage_number: int, job_title: str, passed: bool) -> str:
    label = _MESSAGE_LABELS[stage_number]
    if passed:
        return f"You passed {label} for {job_title}."
    return f"Your application for {job_title} did not advance past {label}."


def hired_message(job_title: str) -> str:
    return (
        f"You have been offered the position: {job_title}. "
        "Complete onboarding in your dashboard."
    )


# -- email ---------------------------------------------------------------


@dataclass
class MailSettings:
    """Sender identity and branding for candidate email."""

    from_email: str = "noreply@stagegate.local"
    from_name: str | None = None
    app_name: str = "StageGate"


def _layout(app_name: str, title: str, content: str) -> str:
    return (
        "<!DOCTYPE html><html>"
        '<body style="font-family: -apple-system, BlinkMacSystemFont, \'Segoe UI\', Arial, sans-serif; '
        'line-height: 1.6; color: #333;">'
        '<div style="max-width: 600px; margin: 0 auto; padding: 20px;">'
        f'<h1 style="color: #0066FF;">{app_name}</h1>'
        f'<h2 style="color: #333;">{title}</h2>'
        f"{content}"
        '<p style="margin-top: 24px; color: #697386; font-size: 14px;">'
        f"Best regards,<br>The {app_name} Team</p>"
        "</div></body></html>"
    )


def render_stage_result(
    app_name: str, job_title: str, passed: bool, label: str
) -> tuple[str, str]:
    """Subject and HTML body for a stage result email."""
    title = PASSED_TITLE if passed else FAILED_TITLE
    if passed:
        content = (
            f"<p>Congratulations! You have advanced past <strong>{label}</strong> "
            f"for the role <strong>{job_title}</strong>.</p>"
            "<p>Log in to your dashboard to see next steps.</p>"
        )
    else:
        content = (
            f"<p>Thank you for your interest in <strong>{job_title}</strong>. "
            "After reviewing your application, we have decided not to move forward "
            "with your application at this stage.</p>"
            "<p>We encourage you to apply for other open positions that match your profile.</p>"
        )
    return f"{app_name} – {title}", _layout(app_name, title, content)


def render_hired(app_name: str, job_title: str) -> tuple[str, str]:
    content = (
        f"<p>Congratulations! We are pleased to offer you the position of "
        f"<strong>{job_title}</strong> at {app_name}.</p>"
        "<p>Log in to your dashboard to complete onboarding.</p>"
    )
    return (
        f"{app_name} – You're hired: {job_title}",
        _layout(app_name, HIRED_TITLE, content),
    )


@runtime_checkable
class Mailer(Protocol):
    def send_stage_result(self, email: str, job_title: str, passed: bool, label: str) -> None:
        ...

    def send_hired(self, email: str, job_title: str) -> None:
        ...


class SendGridMailer:
    """Candidate email delivered through SendGrid."""

    def __init__(
        self,
        api_key: str,
        *,
        settings: MailSettings | None = None,
        client: SendGridAPIClient | None = None,
    ) -> None:
        self._settings = settings or MailSettings()
        self._client = client or SendGridAPIClient(api_key=api_key)
        self._logger = structlog.get_logger(__name__)

    def send_stage_result(self, email: str, job_title: str, passed: bool, label: str) -> None:
        subject, html = render_stage_result(self._settings.app_name, job_title, passed, label)
        self._send(email, subject, html)

    def send_hired(self, email: str, job_title: str) -> None:
        subject, html = render_hired(self._settings.app_name, job_title)
        self._send(email, subject, html)

    def _send(self, to_email: str, subject: str, html: str) -> None:
        sender = (
            (self._settings.from_email, self._settings.from_name)
            if self._settings.from_name
            else self._settings.from_email
        )
        message = Mail(
            from_email=sender,
            to_emails=to_email,
            subject=subject,
            html_content=html,
        )
        response = self._client.send(message)
        if response.status_code >= 400:
            raise DeliveryError(f"SendGrid rejected message to {to_email}: {response.status_code}")
        self._logger.info("mail.sent", to=to_email, subject=subject, status=response.status_code)


class LoggingMailer:
    """Mailer used when no delivery provider is configured; logs instead of sending."""

    def __init__(self, *, settings: MailSettings | None = None) -> None:
        self._settings = settings or MailSettings()
        self._logger = structlog.get_logger(__name__)

    def send_stage_result(self, email: str, job_title: str, passed: bool, label: str) -> None:
        subject, _ = render_stage_result(self._settings.app_name, job_title, passed, label)
        self._logger.info("mail.not_sent", to=email, subject=subject)

    def send_hired(self, email: str, job_title: str) -> None:
        subject, _ = render_hired(self._settings.app_name, job_title)
        self._logger.info("mail.not_sent", to=email, subject=subject)


# -- persisted effects ---------------------------------------------------


class NotificationWriter:
    """Candidate-facing in-app notifications."""

    def __init__(self, *, link: str = NOTIFICATION_LINK) -> None:
        self._link = link

    def create(
        self,
        session: Session,
        user_id: str,
        title: str,
        *,
        message: str | None = None,
        link: str | None = None,
    ) -> Notification:
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            link=link or self._link,
        )
        session.add(notification)
        session.flush()
        return notification


class HrSuggestionWriter:
    """Suggest other open jobs to HR for a candidate who failed a stage."""

    def __init__(self, *, max_per_failure: int | None = None) -> None:
        self._limit = DEFAULT_MAX_SUGGESTIONS if max_per_failure is None else max_per_failure

    def create(
        self,
        session: Session,
        application_id: str,
        failed_job_id: str,
        stage_number: int,
    ) -> list[HrCandidateSuggestion]:
        application = session.get(Application, application_id)
        if application is None or self._limit <= 0:
            return []

        applied = select(Application.job_id).where(
            Application.candidate_id == application.candidate_id
        )
        jobs = session.scalars(
            select(Job)
            .where(
                Job.status == "active",
                Job.id != failed_job_id,
                Job.id.not_in(applied),
            )
            .order_by(Job.created_at.desc())
            .limit(self._limit)
        ).all()
        if not jobs:
            return []

        message = (
            f"Candidate did not advance past {stage_label(stage_number)} for this role "
            "but has not applied to this position; consider reaching out."
        )
        suggestions = [
            HrCandidateSuggestion(
                candidate_id=application.candidate_id,
                suggested_job_id=job.id,
                application_id=application_id,
                source_stage=stage_number,
                message=message,
            )
            for job in jobs
        ]
        session.add_all(suggestions)
        session.flush()
        return suggestions


# -- onboarding hand-off -------------------------------------------------


@runtime_checkable
class OnboardingProvisioner(Protocol):
    def provision(self, application_id: str) -> None:
        ...


class LoggingOnboardingProvisioner:
    """Hand-off point for onboarding; records the hire in the log only."""

    def __init__(self) -> None:
        self._logger = structlog.get_logger(__name__)

    def provision(self, application_id: str) -> None:
        self._logger.info("onboarding.handoff", application_id=application_id)


# -- dispatcher ----------------------------------------------------------


@dataclass(slots=True)
class DispatchReport:
    succeeded: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


class SideEffectDispatcher:
    """Runs notification, email and HR suggestions for a committed outcome.

    Each effect runs on its own; a failing effect is logged and never retried
    and never touches the application status.
    """

    def __init__(
        self,
        *,
        session_factory: sessionmaker[Session],
        mailer: Mailer,
        notifications: NotificationWriter | None = None,
        suggestions: HrSuggestionWriter | None = None,
        onboarding: OnboardingProvisioner | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._mailer = mailer
        self._notifications = notifications or NotificationWriter()
        self._suggestions = suggestions or HrSuggestionWriter()
        self._onboarding = onboarding or LoggingOnboardingProvisioner()
        self._logger = structlog.get_logger(__name__)

    def dispatch(self, outcome: StageOutcome) -> DispatchReport:
        report = DispatchReport()
        job_title = outcome.job_title or "the role"
        context = {
            "application_id": outcome.application_id,
            "stage_number": outcome.stage_number,
            "passed": outcome.passed,
        }

        def notify() -> None:
            with self._session_factory.begin() as session:
                self._notifications.create(
                    session,
                    outcome.candidate_id,
                    PASSED_TITLE if outcome.passed else FAILED_TITLE,
                    message=stage_message(outcome.stage_number, job_title, outcome.passed),
                )

        def email() -> None:
            if not outcome.candidate_email:
                raise DeliveryError("Candidate has no email address")
            self._mailer.send_stage_result(
                outcome.candidate_email,
                job_title,
                outcome.passed,
                stage_label(outcome.stage_number),
            )

        def suggest() -> None:
            with self._session_factory.begin() as session:
                created = self._suggestions.create(
                    session, outcome.application_id, outcome.job_id, outcome.stage_number
                )
            self._logger.info("dispatch.suggestions", count=len(created), **context)

        self._run("notification", notify, report, context)
        self._run("email", email, report, context)
        if not outcome.passed:
            self._run("suggestions", suggest, report, context)
        return report

    def dispatch_hired(
        self,
        *,
        application_id: str,
        candidate_id: str,
        candidate_email: str | None,
        job_title: str | None,
    ) -> DispatchReport:
        report = DispatchReport()
        title = job_title or "the role"
        context = {"application_id": application_id, "hired": True}

        def notify() -> None:
            with self._session_factory.begin() as session:
                self._notifications.create(
                    session, candidate_id, HIRED_TITLE, message=hired_message(title)
                )

        def email() -> None:
            if not candidate_email:
                raise DeliveryError("Candidate has no email address")
            self._mailer.send_hired(candidate_email, title)

        self._run("notification", notify, report, context)
        self._run("email", email, report, context)
        self._run("onboarding", lambda: self._onboarding.provision(application_id), report, context)
        return report

    def _run(
        self,
        name: str,
        effect: Callable[[], None],
        report: DispatchReport,
        context: dict,
    ) -> None:
        try:
            effect()
        except Exception:  # noqa: BLE001
            report.failed.append(name)
            self._logger.error(f"dispatch.{name}_failed", exc_info=True, **context)
        else:
            report.succeeded.append(name)


__all__ = [
    "DispatchReport",
    "HrSuggestionWriter",
    "LoggingMailer",
    "LoggingOnboardingProvisioner",
    "MailSettings",
    "Mailer",
    "NotificationWriter",
    "OnboardingProvisioner",
    "SendGridMailer",
    "SideEffectDispatcher",
    "hired_message",
    "render_hired",
    "render_stage_result",
    "stage_message",
]
