"""SMTP email delivery for CoSave notifications."""

from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import Optional, Sequence

from .exceptions import NotificationError


class EmailClient:
    """Very small wrapper around :mod:`smtplib`."""

    def __init__(
        self,
        host: str,
        port: int,
        *,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 5,
    ) -> None:
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def build_message(self, subject: str, body: str, *, sender: str, recipients: Sequence[str]) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = sender
        message["To"] = ", ".join(recipients)
        message.set_content(body)
        return message

    def deliver(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.send_message(message)
        except (OSError, smtplib.SMTPException) as exc:
            raise NotificationError(f"Could not deliver email via {self.host}:{self.port}: {exc}") from exc


class EmailDispatcher:
    """Notification dispatcher that sends plain-text email."""

    def __init__(self, client: EmailClient, *, sender: str) -> None:
        self.client = client
        self.sender = sender

    def send(self, to: str, subject: str, body: str) -> None:
        message = self.client.build_message(subject, body, sender=self.sender, recipients=[to])
        self.client.deliver(message)


__all__ = ["EmailClient", "EmailDispatcher"]
