"""Notification primitives for CoSave."""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Protocol, Sequence, runtime_checkable

from .models import WithdrawalRequest, normalize_email, utcnow
from .money import format_amount


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Outbound channel used to reach co-signers."""

    def send(self, to: str, subject: str, body: str) -> None:
        ...


@dataclass(slots=True)
class Notification:
    """Simple representation of a delivered notification."""

    recipient: str
    subject: str
    body: str
    created_at: datetime = field(default_factory=utcnow)


class NotificationCenter:
    """In-memory outbox used when no mail server is configured, and in tests."""

    def __init__(self) -> None:
        self._sent: List[Notification] = []
        self._lock = threading.Lock()

    def send(self, to: str, subject: str, body: str) -> None:
        notification = Notification(recipient=normalize_email(to), subject=subject, body=body)
        with self._lock:
            self._sent.append(notification)

    def history(self, *, recipient: str | None = None) -> Sequence[Notification]:
        with self._lock:
            sent = tuple(self._sent)
        if recipient is None:
            return sent
        target = normalize_email(recipient)
        return tuple(item for item in sent if item.recipient == target)


def withdrawal_requested_message(
    saver_name: str,
    request: WithdrawalRequest,
    *,
    goal_name: str,
    locked: bool,
    lock_until: datetime,
) -> tuple[str, str]:
    """Return the ``(subject, body)`` sent to a co-signer for a new request."""

    subject = f"{saver_name} requested a withdrawal of {format_amount(request.amount)}"
    lines = [
        f"{saver_name} asked to withdraw {format_amount(request.amount)} from '{goal_name}'.",
        f"Request id: {request.id}",
    ]
    if locked:
        lines.append(f"The goal is locked until {lock_until:%B %d, %Y}; this request was filed early.")
    lines.append("Sign in to approve or reject it.")
    return subject, "\n".join(lines)


__all__ = [
    "Notification",
    "NotificationCenter",
    "NotificationDispatcher",
    "withdrawal_requested_message",
]
