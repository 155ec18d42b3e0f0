from email.message import EmailMessage
import logging
import smtplib
from typing import Protocol

from chunkexec.config import Settings


logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def deliver(self, subject: str, body: str) -> None: ...


class LoggingNotifier:
    # Dry run: the report is logged, never sent.
    def deliver(self, subject: str, body: str) -> None:
        logger.info("completion report (not sent)", extra={"subject": subject, "body_length": len(body)})


class SmtpNotifier:
    def __init__(self, *, host: str, port: int, sender: str, recipients: list[str]) -> None:
        self.host = host
        self.port = port
        self.sender = sender
        self.recipients = recipients

    def deliver(self, subject: str, body: str) -> None:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self.sender
        message["To"] = ", ".join(self.recipients)
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port) as smtp:
            smtp.send_message(message)
        logger.info("completion report sent", extra={"subject": subject, "recipients": self.recipients})


def build_notifier(settings: Settings) -> Notifier:
    recipients = [address.strip() for address in settings.notify_to.split(",") if address.strip()]
    if settings.dry_run or not settings.smtp_host or not recipients:
        return LoggingNotifier()
    return SmtpNotifier(
        host=settings.smtp_host,
        port=settings.smtp_port,
        sender=settings.notify_from or f"{settings.app_name}@localhost",
        recipients=recipients,
    )
