"""
core/mailer.py -- Plain-text SMTP delivery for account notifications.

SMTPMailer.send() is the notification dispatcher used by the password reset
flow. Unlike fire-and-forget background mail, delivery failures here matter:
the caller must roll back a reset token the user never received. Every
failure is therefore raised as DeliveryError instead of being logged away.

Transport selection:
  email_use_ssl=true  -- implicit TLS (SMTP_SSL), usually port 465.
  email_use_ssl=false -- plain SMTP upgraded with STARTTLS when the server
                         advertises it, usually port 587.

Layer rule: core/ is the kernel. No imports from api/ or auth/.
"""

from __future__ import annotations

import logging
import smtplib
import ssl
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formatdate, make_msgid, parseaddr

from core.config import Settings

logger = logging.getLogger("wayfarer.mailer")


class DeliveryError(Exception):
    """Raised when a message could not be handed to the SMTP server."""


@dataclass(frozen=True)
class SMTPSettings:
    """Runtime configuration for delivering emails via SMTP."""

    host: str
    port: int
    username: str
    password: str
    from_addr: str
    timeout: float
    use_ssl: bool

    @classmethod
    def from_settings(cls, settings: Settings) -> SMTPSettings:
        return cls(
            host=settings.email_host,
            port=settings.email_port,
            username=settings.email_username,
            password=settings.email_password,
            from_addr=settings.email_from,
            timeout=settings.email_timeout,
            use_ssl=settings.email_use_ssl,
        )


def build_email(*, subject: str, from_addr: str, to_addr: str, body: str) -> EmailMessage:
    """Create a simple plain text email message."""
    message = EmailMessage()
    message["Subject"] = subject
    message["From"] = from_addr
    message["To"] = to_addr
    message["Date"] = formatdate(localtime=True)
    # Automated mail: suppress out-of-office replies and responder loops.
    message["Auto-Submitted"] = "auto-generated"
    _name, addr = parseaddr(from_addr)
    domain = addr.split("@", 1)[1] if "@" in addr else None
    message["Message-ID"] = make_msgid(domain=domain)
    message.set_content(body)
    return message


class SMTPMailer:
    """Deliver plain-text notifications through a configured SMTP relay.

    Usage:
        mailer = SMTPMailer(SMTPSettings.from_settings(get_settings()))
        mailer.send("user@example.com", "Subject", "Body text")
    """

    def __init__(self, settings: SMTPSettings) -> None:
        self.settings = settings

    def send(self, recipient: str, subject: str, body: str) -> None:
        """Send one message. Raises DeliveryError on any failure."""
        if not self.settings.host:
            raise DeliveryError("SMTP host is not configured.")

        message = build_email(
            subject=subject,
            from_addr=self.settings.from_addr,
            to_addr=recipient,
            body=body,
        )
        try:
            self._deliver(message)
        except smtplib.SMTPAuthenticationError as exc:
            logger.error("SMTP authentication failed for host %s", self.settings.host)
            raise DeliveryError("SMTP authentication failed.") from exc
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s via %s: %s", recipient, self.settings.host, exc)
            raise DeliveryError(f"Could not deliver email: {exc}") from exc
        logger.info("Email sent to %s (subject=%r)", recipient, subject)

    def _deliver(self, message: EmailMessage) -> None:
        context = ssl.create_default_context()
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        cfg = self.settings

        if cfg.use_ssl:
            server: smtplib.SMTP = smtplib.SMTP_SSL(cfg.host, cfg.port, context=context, timeout=cfg.timeout)
        else:
            server = smtplib.SMTP(cfg.host, cfg.port, timeout=cfg.timeout)

        with server:
            server.ehlo()
            if not cfg.use_ssl and server.has_extn("starttls"):
                server.starttls(context=context)
                server.ehlo()
            if cfg.username and cfg.password:
                server.login(cfg.username, cfg.password)
            server.send_message(message)
