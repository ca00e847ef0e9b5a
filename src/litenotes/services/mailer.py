"""Outbound mail senders used for password reset links."""

from __future__ import annotations

import html as html_lib
import logging
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from functools import lru_cache
from typing import Protocol

from litenotes.core.errors import MailDeliveryError
from litenotes.core.settings import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundMail:
    """A rendered message ready for delivery."""

    to: str
    subject: str
    text: str
    html: str | None = None


class MailSender(Protocol):
    """Anything able to deliver an ``OutboundMail``."""

    def send(self, mail: OutboundMail) -> None: ...


class SmtpMailSender:
    """Deliver mail through an SMTP relay."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        sender: str,
        timeout: float = 10.0,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.sender = sender
        self.timeout = timeout

    def _build_message(self, mail: OutboundMail) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = mail.to
        message["Subject"] = mail.subject
        message.set_content(mail.text)
        if mail.html:
            message.add_alternative(mail.html, subtype="html")
        return message

    def send(self, mail: OutboundMail) -> None:
        """Send ``mail``; raise ``MailDeliveryError`` on any SMTP or socket failure."""
        message = self._build_message(mail)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as err:
            logger.error("SMTP delivery to %s failed: %s", mail.to, err, exc_info=True)
            raise MailDeliveryError() from err
        logger.info("Sent %r to %s", mail.subject, mail.to)


class LogMailSender:
    """Development sender that records mail in the log instead of delivering it."""

    def send(self, mail: OutboundMail) -> None:
        logger.warning("SMTP not configured; mail to %s not delivered: %s", mail.to, mail.subject)


def render_reset_mail(to: str, username: str, reset_link: str, ttl_minutes: int) -> OutboundMail:
    """Render the password reset email for ``username``."""
    text = (
        f"Hello {username},\n\n"
        "Please click on the following link, or paste it into your browser to complete "
        f"the password reset process within {ttl_minutes} minutes:\n\n"
        f"{reset_link}\n\n"
        "If you did not request this, please ignore this email and your password "
        "will remain unchanged.\n"
    )
    safe_name = html_lib.escape(username)
    safe_link = html_lib.escape(reset_link, quote=True)
    html = (
        f"<p>Hello {safe_name},</p>"
        "<p>Please click on the following link to complete the password reset process "
        f"within {ttl_minutes} minutes:</p>"
        f'<p><a href="{safe_link}">{safe_link}</a></p>'
        "<p>If you did not request this, please ignore this email and your password "
        "will remain unchanged.</p>"
    )
    return OutboundMail(
        to=to,
        subject=f"Password Reset Request for {settings.app_name}",
        text=text,
        html=html,
    )


@lru_cache(maxsize=1)
def get_mail_sender() -> MailSender:
    """Return the configured mail sender."""
    if not settings.smtp_enabled:
        return LogMailSender()
    return SmtpMailSender(
        settings.smtp_host or "",
        settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        sender=settings.mail_from,
        timeout=settings.smtp_timeout_seconds,
    )
