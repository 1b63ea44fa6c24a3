from __future__ import annotations

from types import SimpleNamespace

import pytest

from stagegate.dispatch import PASSED_TITLE, MailSettings, SendGridMailer
from stagegate.errors import DeliveryError


class FakeSendGrid:
    def __init__(self, status_code: int):
        self.status_code = status_code
        self.messages: list = []

    def send(self, message):
        self.messages.append(message)
        return SimpleNamespace(status_code=self.status_code)


def test_accepted_message_is_sent_once():
    client = FakeSendGrid(202)
    mailer = SendGridMailer(
        "SG.test", settings=MailSettings(from_name="Hiring Team", app_name="Acme"), client=client
    )

    mailer.send_stage_result("ada@example.com", "Backend Engineer", True, "Resume Screening")

    [message] = client.messages
    payload = message.get()
    assert payload["from"] == {"email": "noreply@stagegate.local", "name": "Hiring Team"}
    assert payload["personalizations"][0]["to"] == [{"email": "ada@example.com"}]
    assert payload["subject"] == f"Acme – {PASSED_TITLE}"
    assert "Backend Engineer" in payload["content"][0]["value"]


@pytest.mark.parametrize("status_code", [400, 401, 500])
def test_provider_rejection_raises_delivery_error(status_code):
    mailer = SendGridMailer("SG.test", client=FakeSendGrid(status_code))

    with pytest.raises(DeliveryError, match=f"rejected message to ada@example.com: {status_code}"):
        mailer.send_hired("ada@example.com", "Backend Engineer")
