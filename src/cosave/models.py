"""Domain models used by the CoSave package."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional
from uuid import uuid4

from .exceptions import AlreadyProcessedError, InvalidDecisionError, ValidationError
from .money import ZERO, AmountLike, require_positive, to_decimal


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(moment: datetime) -> datetime:
    """Attach UTC to naive timestamps (SQLite drops tzinfo) and convert aware ones."""

    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def parse_timestamp(value: datetime | str) -> datetime:
    """Parse an ISO-8601 timestamp (``2026-03-01T00:00:00.000+00:00`` or ``...Z``)."""

    if isinstance(value, datetime):
        return ensure_utc(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Timestamp must be an ISO-8601 string.")
    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        return ensure_utc(datetime.fromisoformat(text))
    except ValueError as exc:
        raise ValidationError(f"Invalid ISO-8601 timestamp: {value!r}") from exc


def normalize_email(value: Optional[str]) -> str:
    """Return ``value`` trimmed and lower-cased; ``None`` becomes an empty string."""

    return (value or "").strip().lower()


def new_id() -> str:
    return str(uuid4())


class WithdrawalStatus(str, Enum):
    """Lifecycle of a withdrawal awaiting co-signer review."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def is_terminal(self) -> bool:
        return self is not WithdrawalStatus.PENDING

    @classmethod
    def decision(cls, value: "str | WithdrawalStatus") -> "WithdrawalStatus":
        """Parse a co-signer decision; only terminal states are accepted."""

        if isinstance(value, cls):
            status = value
        else:
            try:
                status = cls(str(value or "").strip().lower())
            except ValueError as exc:
                raise InvalidDecisionError("Invalid status") from exc
        if not status.is_terminal:
            raise InvalidDecisionError("Invalid status")
        return status


@dataclass(frozen=True, slots=True)
class Identity:
    """A verified caller: the user id and email carried by a bearer credential."""

    user_id: str
    email: str

    def __post_init__(self) -> None:
        object.__setattr__(self, "email", normalize_email(self.email))


@dataclass(slots=True)
class User:
    """A saver registered with CoSave."""

    id: str
    name: str
    email: str
    co_signer_email: str
    password_hash: str = ""
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        self.email = normalize_email(self.email)
        self.co_signer_email = normalize_email(self.co_signer_email)
        self.created_at = ensure_utc(self.created_at)

    @property
    def identity(self) -> Identity:
        return Identity(user_id=self.id, email=self.email)


@dataclass(slots=True)
class SavingGoal:
    """A user's single locked savings goal."""

    id: str
    user_id: str
    goal_name: str
    target_amount: Decimal
    lock_until: datetime
    current_amount: Decimal = ZERO
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        target = require_positive(to_decimal(self.target_amount))
        current = to_decimal(self.current_amount)
        if current < ZERO:
            raise ValidationError("current_amount cannot be negative.")
        self.target_amount = target
        self.current_amount = current
        self.lock_until = ensure_utc(self.lock_until)
        self.created_at = ensure_utc(self.created_at)

    def is_locked(self, *, at: datetime | None = None) -> bool:
        """True while the lock window has not yet elapsed."""

        moment = ensure_utc(at) if at else utcnow()
        return moment < self.lock_until

    def can_cover(self, amount: Decimal) -> bool:
        return ZERO < amount <= self.current_amount

    @property
    def remaining(self) -> Decimal:
        """Return the amount still required to reach the target."""

        remainder = self.target_amount - self.current_amount
        return remainder if remainder > ZERO else ZERO

    def progress(self) -> Decimal:
        """Return the progress towards the target as a decimal ratio."""

        ratio = self.current_amount / self.target_amount
        return ratio.quantize(Decimal("0.0001"), rounding=ROUND_HALF_UP)


@dataclass(slots=True)
class WithdrawalRequest:
    """A withdrawal awaiting resolution by the owner's co-signer."""

    id: str
    user_id: str
    goal_id: str
    amount: Decimal
    status: WithdrawalStatus = WithdrawalStatus.PENDING
    created_at: datetime = field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None

    def __post_init__(self) -> None:
        self.amount = require_positive(to_decimal(self.amount))
        self.status = WithdrawalStatus(self.status)
        self.created_at = ensure_utc(self.created_at)
        if self.resolved_at is not None:
            self.resolved_at = ensure_utc(self.resolved_at)

    @property
    def is_pending(self) -> bool:
        return self.status is WithdrawalStatus.PENDING

    def resolve(self, decision: WithdrawalStatus, actor: str, *, when: datetime | None = None) -> None:
        if not self.is_pending:
            raise AlreadyProcessedError("Withdrawal already processed")
        self.status = WithdrawalStatus.decision(decision)
        self.resolved_by = normalize_email(actor)
        self.resolved_at = ensure_utc(when) if when else utcnow()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RegistrationCommand:
    name: str
    email: str
    password: str
    co_signer_email: str

    def __post_init__(self) -> None:
        name = (self.name or "").strip()
        email = normalize_email(self.email)
        co_signer = normalize_email(self.co_signer_email)
        if not name:
            raise ValidationError("Name is required.")
        if "@" not in email:
            raise ValidationError("A valid email is required.")
        if "@" not in co_signer:
            raise ValidationError("A valid co-signer email is required.")
        if co_signer == email:
            raise ValidationError("Co-signer email must differ from your own email.")
        if not self.password:
            raise ValidationError("Password is required.")
        object.__setattr__(self, "name", name)
        object.__setattr__(self, "email", email)
        object.__setattr__(self, "co_signer_email", co_signer)


@dataclass(frozen=True, slots=True)
class CreateGoalCommand:
    goal_name: str
    target_amount: AmountLike
    lock_until: datetime | str

    def __post_init__(self) -> None:
        name = (self.goal_name or "").strip()
        if not name:
            raise ValidationError("goalName is required.")
        object.__setattr__(self, "goal_name", name)
        object.__setattr__(self, "target_amount", require_positive(to_decimal(self.target_amount)))
        object.__setattr__(self, "lock_until", parse_timestamp(self.lock_until))


@dataclass(frozen=True, slots=True)
class AddFundsCommand:
    amount: AmountLike

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", require_positive(to_decimal(self.amount)))


@dataclass(frozen=True, slots=True)
class WithdrawalCommand:
    # Positivity is checked by the engine so the caller sees the withdrawable maximum.
    amount: AmountLike

    def __post_init__(self) -> None:
        object.__setattr__(self, "amount", to_decimal(self.amount))


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------
@dataclass(slots=True)
class WithdrawalReceipt:
    """Confirmation returned when a withdrawal request has been filed."""

    request: WithdrawalRequest
    message: str
    locked: bool
    lock_until: datetime
    notified: bool


@dataclass(slots=True)
class WithdrawalResolution:
    """Outcome of a co-signer decision."""

    request: WithdrawalRequest
    goal_balance: Decimal
    message: str

    @property
    def status(self) -> WithdrawalStatus:
        return self.request.status


__all__ = [
    "AddFundsCommand",
    "CreateGoalCommand",
    "Identity",
    "RegistrationCommand",
    "SavingGoal",
    "User",
    "WithdrawalCommand",
    "WithdrawalReceipt",
    "WithdrawalRequest",
    "WithdrawalResolution",
    "WithdrawalStatus",
    "ensure_utc",
    "new_id",
    "normalize_email",
    "parse_timestamp",
    "utcnow",
]
