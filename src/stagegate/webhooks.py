"\"\"\"Voice provider webhook parsing.\"\"\""

from __future__ import annotations

import math
from typing import Any, Mapping

import pendulum
import structlog

from .schemas import EndOfCallEvent

END_OF_CALL_REPORT = "end-of-call-report"

_ROLE_NAMES = {"assistant": "Assistant", "user": "User"}

logger = structlog.get_logger(__name__)


def parse_end_of_call_report(body: Mapping[str, Any] | None) -> EndOfCallEvent | None:
    """Turn a provider webhook body into an end-of-call event.

    Returns ``None`` for other message types and for reports that lack the
    assistant id or any transcript; those are acknowledged and ignored.
    """
    message = _mapping((body or {}).get("message"))
    message_type = message.get("type")
    if message_type != END_OF_CALL_REPORT:
        if message_type:
            logger.debug("webhook.ignored", message_type=message_type)
        return None

    call = _mapping(message.get("call"))
    artifact = _mapping(message.get("artifact"))

    assistant_id = call.get("assistantId")
    transcript = artifact.get("transcript") or transcript_from_messages(artifact.get("messages"))
    if not assistant_id or not transcript:
        logger.info(
            "webhook.incomplete_report",
            has_assistant_id=bool(assistant_id),
            has_transcript=bool(transcript),
        )
        return None

    return EndOfCallEvent(
        assistant_id=str(assistant_id),
        call_id=str(call.get("id") or ""),
        transcript=str(transcript),
        recording_url=_recording_url(artifact),
        duration_seconds=duration_seconds(
            call.get("startedAt") or message.get("startedAt"),
            call.get("endedAt") or message.get("endedAt"),
        ),
    )


def transcript_from_messages(messages: Any) -> str:
    if not isinstance(messages, list) or not messages:
        return ""
    lines = []
    for entry in messages:
        entry = _mapping(entry)
        role = entry.get("role")
        name = _ROLE_NAMES.get(role, role) or "Unknown"
        line = f"{name}: {entry.get('message') or ''}".strip()
        if line:
            lines.append(line)
    return "\n".join(lines)


def duration_seconds(started_at: Any, ended_at: Any) -> int | None:
    """Whole seconds between two ISO timestamps, or ``None`` when not usable."""
    if not started_at or not ended_at:
        return None
    try:
        start = pendulum.parse(str(started_at))
        end = pendulum.parse(str(ended_at))
    except ValueError:
        return None
    if not isinstance(start, pendulum.DateTime) or not isinstance(end, pendulum.DateTime):
        return None
    if end <= start:
        return None
    return math.floor((end - start).total_seconds() + 0.5)


def _recording_url(artifact: Mapping[str, Any]) -> str | None:
    if artifact.get("recordingUrl"):
        return str(artifact["recordingUrl"])
    recording = _mapping(artifact.get("recording"))
    url = recording.get("stereoUrl") or _mapping(recording.get("mono")).get("url")
    return str(url) if url else None


def _mapping(value: Any) -> Mapping[str, Any]:
    return value if isinstance(value, Mapping) else {}


__all__ = ["END_OF_CALL_REPORT", "duration_seconds", "parse_end_of_call_report", "transcript_from_messages"]
