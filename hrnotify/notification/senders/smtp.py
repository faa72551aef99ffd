"""SMTP email sender."""

import re
from email.mime.text import MIMEText
from email.utils import formataddr, parseaddr

import aiosmtplib

from hrnotify.core.config import Settings, get_settings
from hrnotify.core.exceptions import InvalidRecipientError, SendError
from hrnotify.core.logging import get_logger
from hrnotify.models.notification import Recipient
from hrnotify.notification.senders.base import NotificationSender

logger = get_logger(__name__)

_IMPLICIT_TLS_PORT = 465
_ADDRESS_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


def is_valid_email(address: str) -> bool:
    """Check that ``address`` is a single bare email address."""
    _, parsed = parseaddr(address)
    return parsed == address and bool(_ADDRESS_RE.match(address))


def sanitize_header(value: str) -> str:
    """Collapse line breaks so a value cannot inject extra headers."""
    return " ".join(value.splitlines()).strip()


def sanitize_body(body: str) -> str:
    """Trim surrounding whitespace and normalize line endings."""
    return body.strip().replace("\r\n", "\n").replace("\r", "\n")


class SmtpSender(NotificationSender):
    """Email sender using SMTP.

    Port 465 uses implicit TLS; any other port upgrades with STARTTLS when
    ``smtp_use_tls`` is set.
    """

    def __init__(self, settings: Settings | None = None):
        self._settings = settings or get_settings()

    @property
    def channel_type(self) -> str:
        return "smtp"

    async def send(self, recipient: Recipient, subject: str, body: str) -> None:
        if not is_valid_email(recipient.email):
            raise InvalidRecipientError(f"Invalid recipient email address: {recipient.email!r}")

        if not self._settings.smtp_host:
            raise SendError("SMTP not configured")

        msg = self._build_message(recipient, subject, body)
        use_tls = self._settings.smtp_port == _IMPLICIT_TLS_PORT

        try:
            await aiosmtplib.send(
                msg,
                hostname=self._settings.smtp_host,
                port=self._settings.smtp_port,
                username=self._settings.smtp_user or None,
                password=self._settings.smtp_password or None,
                use_tls=use_tls,
                start_tls=self._settings.smtp_use_tls and not use_tls,
                timeout=self._settings.smtp_timeout_seconds,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise SendError(f"SMTP delivery to {recipient.email} failed: {e}", cause=e) from e

        logger.info("Email sent", recipient=recipient.email, subject=msg["Subject"])

    def _build_message(self, recipient: Recipient, subject: str, body: str) -> MIMEText:
        from_addr = self._settings.smtp_from or self._settings.smtp_user
        msg = MIMEText(sanitize_body(body), "plain", "utf-8")
        msg["Subject"] = sanitize_header(subject) or "Notification"
        msg["From"] = formataddr((sanitize_header(self._settings.smtp_from_name), from_addr))
        msg["To"] = formataddr((sanitize_header(recipient.name), recipient.email))
        return msg
