from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cosave.exceptions import AlreadyProcessedError, InvalidDecisionError, ValidationError
from cosave.models import (
    AddFundsCommand,
    CreateGoalCommand,
    Identity,
    RegistrationCommand,
    SavingGoal,
    User,
    WithdrawalRequest,
    WithdrawalStatus,
    normalize_email,
    parse_timestamp,
)
from cosave.money import format_amount, from_cents, to_cents, to_decimal


def test_to_decimal_keeps_cents_and_rejects_non_numbers() -> None:
    assert to_decimal(12.5) == Decimal("12.50")
    assert to_decimal("3.450") == Decimal("3.45")

    for bad in (float("nan"), float("inf"), "abc", None, True, [1], "3.456", "0.005", 1e-05):
        with pytest.raises(ValidationError):
            to_decimal(bad)


def test_format_amount_drops_zero_cents() -> None:
    assert format_amount(Decimal("350000.00")) == "350000"
    assert format_amount(Decimal("12.5")) == "12.50"
    assert to_cents(Decimal("12.34")) == 1234
    assert from_cents(1234) == Decimal("12.34")


def test_emails_are_trimmed_and_lowercased() -> None:
    assert normalize_email("  Co@Example.COM ") == "co@example.com"
    assert normalize_email(None) == ""

    user = User(id="u1", name="Uma", email=" Uma@Example.com", co_signer_email=" Co@Example.com ")
    assert user.email == "uma@example.com"
    assert user.co_signer_email == "co@example.com"
    assert Identity(user_id="u1", email="UMA@example.com ").email == "uma@example.com"


def test_parse_timestamp_accepts_iso_variants() -> None:
    expected = datetime(2026, 3, 1, tzinfo=timezone.utc)

    assert parse_timestamp("2026-03-01T00:00:00.000+00:00") == expected
    assert parse_timestamp("2026-03-01T00:00:00Z") == expected
    assert parse_timestamp(datetime(2026, 3, 1)) == expected

    with pytest.raises(ValidationError):
        parse_timestamp("next tuesday")


def test_goal_commands_validate_input() -> None:
    command = CreateGoalCommand(goal_name=" House ", target_amount="900000", lock_until="2030-01-01T00:00:00Z")
    assert command.goal_name == "House"
    assert command.target_amount == Decimal("900000.00")

    with pytest.raises(ValidationError):
        CreateGoalCommand(goal_name="", target_amount=10, lock_until="2030-01-01T00:00:00Z")
    with pytest.raises(ValidationError):
        CreateGoalCommand(goal_name="House", target_amount=0, lock_until="2030-01-01T00:00:00Z")
    with pytest.raises(ValidationError):
        AddFundsCommand(amount=-1)
    with pytest.raises(ValidationError):
        AddFundsCommand(amount=float("nan"))


def test_registration_rejects_self_co_signer() -> None:
    with pytest.raises(ValidationError):
        RegistrationCommand(name="Uma", email="uma@example.com", password="pw", co_signer_email=" UMA@example.com")

    command = RegistrationCommand(name="Uma", email="Uma@Example.com", password="pw", co_signer_email="Co@Example.com")
    assert command.co_signer_email == "co@example.com"


def test_goal_lock_and_progress() -> None:
    now = datetime.now(timezone.utc)
    goal = SavingGoal(
        id="g1",
        user_id="u1",
        goal_name="Bike",
        target_amount=200,
        current_amount=50,
        lock_until=now + timedelta(days=30),
    )

    assert goal.is_locked(at=now)
    assert not goal.is_locked(at=now + timedelta(days=31))
    assert goal.remaining == Decimal("150.00")
    assert goal.progress() == Decimal("0.2500")
    assert goal.can_cover(Decimal("50"))
    assert not goal.can_cover(Decimal("50.01"))
    assert not goal.can_cover(Decimal("0"))


def test_withdrawal_resolves_exactly_once() -> None:
    request = WithdrawalRequest(id="w1", user_id="u1", goal_id="g1", amount=25)

    request.resolve(WithdrawalStatus.REJECTED, " Co@Example.com")

    assert request.status is WithdrawalStatus.REJECTED
    assert request.resolved_by == "co@example.com"
    assert request.resolved_at is not None
    with pytest.raises(AlreadyProcessedError):
        request.resolve(WithdrawalStatus.APPROVED, "co@example.com")


def test_decision_parsing() -> None:
    assert WithdrawalStatus.decision(" Approved ") is WithdrawalStatus.APPROVED
    assert WithdrawalStatus.decision("rejected") is WithdrawalStatus.REJECTED

    for bad in ("pending", "maybe", "", None):
        with pytest.raises(InvalidDecisionError):
            WithdrawalStatus.decision(bad)
