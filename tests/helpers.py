"""
tests/helpers.py -- Shared constants and fakes imported by test modules.

Fixtures live in conftest.py; plain helpers live here so test modules can
import them directly.
"""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass

from core.mailer import DeliveryError

TEST_SECRET = "test-secret-key-that-is-at-least-32-characters"
DEFAULT_PASSWORD = "pass1234"

_RESET_LINK = re.compile(r"/resetPassword/([0-9a-f]{64})")


@dataclass(frozen=True)
class SentMail:
    recipient: str
    subject: str
    body: str


class RecordingMailer:
    """Notification dispatcher fake. Set ``fail = True`` to simulate an SMTP outage."""

    def __init__(self) -> None:
        self.sent: list[SentMail] = []
        self.fail = False

    def send(self, recipient: str, subject: str, body: str) -> None:
        if self.fail:
            raise DeliveryError("SMTP relay unavailable")
        self.sent.append(SentMail(recipient, subject, body))


def reset_secret_from(body: str) -> str:
    """Pull the reset secret out of a reset email body."""
    match = _RESET_LINK.search(body)
    assert match, f"no reset link in email body: {body!r}"
    return match.group(1)


def memory_db_url(prefix: str) -> str:
    """Named shared-memory SQLite URL, unique per call."""
    return f"sqlite:///file:{prefix}_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
