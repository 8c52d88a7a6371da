import threading
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from cosave.exceptions import (
    AlreadyProcessedError,
    GoalNotFoundError,
    InsufficientFundsError,
    InvalidDecisionError,
    NoGoalFoundError,
    NotificationError,
    UnauthorizedError,
    WithdrawalNotFoundError,
)
from cosave.models import Identity, WithdrawalStatus
from cosave.notifications import NotificationCenter
from cosave.service import CoSave


class FailingDispatcher:
    def __init__(self) -> None:
        self.calls = 0

    def send(self, to: str, subject: str, body: str) -> None:
        self.calls += 1
        raise NotificationError("SMTP server unavailable")


def setup_bank(dispatcher=None):
    outbox = dispatcher or NotificationCenter()
    bank = CoSave(dispatcher=outbox)
    saver = bank.register(
        name="Uma",
        email="uma@example.com",
        password="secret",
        co_signer_email=" Co@Example.com ",
    )
    co_signer = bank.register(
        name="Cole",
        email="co@example.com",
        password="secret",
        co_signer_email="friend@example.com",
    )
    return bank, outbox, saver.identity, co_signer.identity


def fund_goal(bank: CoSave, identity: Identity, amount, *, lock_days: int = 180):
    goal = bank.create_goal(
        identity,
        goal_name="House",
        target_amount=900000,
        lock_until=datetime.now(timezone.utc) + timedelta(days=lock_days),
    )
    bank.add_funds(identity, amount)
    return goal


def test_full_request_and_approval_scenario() -> None:
    bank, outbox, uma, cole = setup_bank()
    goal = fund_goal(bank, uma, 350000)
    assert bank.get_goal(uma, goal.id).current_amount == Decimal("350000.00")

    with pytest.raises(InsufficientFundsError, match="up to 350000"):
        bank.request_withdrawal(uma, 400000)

    receipt = bank.request_withdrawal(uma, 100000)
    assert receipt.request.status is WithdrawalStatus.PENDING
    assert receipt.message == "Withdrawal request sent to co-signer"
    assert receipt.notified
    assert bank.get_goal(uma, goal.id).current_amount == Decimal("350000.00")

    sent = outbox.history(recipient="co@example.com")
    assert len(sent) == 1
    assert receipt.request.id in sent[0].body

    resolution = bank.approve_withdrawal(receipt.request.id, cole)
    assert resolution.status is WithdrawalStatus.APPROVED
    assert resolution.goal_balance == Decimal("250000.00")
    assert resolution.request.resolved_by == "co@example.com"
    assert bank.get_goal(uma, goal.id).current_amount == Decimal("250000.00")

    with pytest.raises(AlreadyProcessedError):
        bank.approve_withdrawal(receipt.request.id, cole)
    with pytest.raises(AlreadyProcessedError):
        bank.reject_withdrawal(receipt.request.id, cole)
    assert bank.get_goal(uma, goal.id).current_amount == Decimal("250000.00")


def test_rejection_leaves_balance_untouched() -> None:
    bank, _, uma, cole = setup_bank()
    goal = fund_goal(bank, uma, 500)
    receipt = bank.request_withdrawal(uma, 200)

    resolution = bank.resolve_withdrawal(receipt.request.id, cole, " REJECTED ")

    assert resolution.status is WithdrawalStatus.REJECTED
    assert resolution.message == "Withdrawal rejected"
    assert resolution.goal_balance == Decimal("500.00")
    assert bank.get_goal(uma, goal.id).current_amount == Decimal("500.00")


def test_request_requires_goal_and_positive_covered_amount() -> None:
    bank, _, uma, _ = setup_bank()

    with pytest.raises(NoGoalFoundError):
        bank.request_withdrawal(uma, 10)
    with pytest.raises(GoalNotFoundError):
        bank.request_withdrawal(uma, 10)

    fund_goal(bank, uma, 100)
    for amount in (0, -1, "100.01"):
        with pytest.raises(InsufficientFundsError, match="up to 100"):
            bank.request_withdrawal(uma, amount)

    assert bank.request_withdrawal(uma, 100).request.amount == Decimal("100.00")


def test_requests_are_allowed_during_lock_window() -> None:
    bank, outbox, uma, _ = setup_bank()
    fund_goal(bank, uma, 100, lock_days=30)

    early = bank.request_withdrawal(uma, 10)
    late = bank.request_withdrawal(uma, 10, at=datetime.now(timezone.utc) + timedelta(days=31))

    assert early.locked
    assert not late.locked
    assert "filed early" in outbox.history()[0].body
    assert "filed early" not in outbox.history()[1].body


def test_only_designated_co_signer_may_resolve() -> None:
    bank, _, uma, cole = setup_bank()
    stranger = bank.register(
        name="Sam",
        email="sam@example.com",
        password="secret",
        co_signer_email="co@example.com",
    ).identity
    fund_goal(bank, uma, 100)
    receipt = bank.request_withdrawal(uma, 50)

    for identity in (uma, stranger):
        with pytest.raises(UnauthorizedError):
            bank.approve_withdrawal(receipt.request.id, identity)

    shouty = Identity(user_id=cole.user_id, email="  CO@EXAMPLE.COM  ")
    assert bank.approve_withdrawal(receipt.request.id, shouty).status is WithdrawalStatus.APPROVED


def test_unknown_withdrawal_and_invalid_decision() -> None:
    bank, _, uma, cole = setup_bank()
    fund_goal(bank, uma, 100)
    receipt = bank.request_withdrawal(uma, 50)

    with pytest.raises(WithdrawalNotFoundError):
        bank.approve_withdrawal("missing", cole)
    for decision in ("maybe", "pending", ""):
        with pytest.raises(InvalidDecisionError):
            bank.resolve_withdrawal(receipt.request.id, cole, decision)
    assert bank.list_withdrawals(uma)[0].status is WithdrawalStatus.PENDING


def test_approval_revalidates_balance_and_keeps_request_pending() -> None:
    bank, _, uma, cole = setup_bank()
    goal = fund_goal(bank, uma, 400)
    first = bank.request_withdrawal(uma, 300)
    second = bank.request_withdrawal(uma, 200)

    bank.approve_withdrawal(first.request.id, cole)
    with pytest.raises(InsufficientFundsError, match="up to 100"):
        bank.approve_withdrawal(second.request.id, cole)

    pending = bank.pending_for_co_signer(cole)
    assert [request.id for request in pending] == [second.request.id]
    assert bank.get_goal(uma, goal.id).current_amount == Decimal("100.00")

    bank.reject_withdrawal(second.request.id, cole)
    assert bank.pending_for_co_signer(cole) == []


def test_notification_failure_does_not_block_request() -> None:
    dispatcher = FailingDispatcher()
    bank, _, uma, _ = setup_bank(dispatcher)
    fund_goal(bank, uma, 100)

    receipt = bank.request_withdrawal(uma, 40)

    assert dispatcher.calls == 1
    assert not receipt.notified
    assert bank.list_withdrawals(uma)[0].id == receipt.request.id
    failure = bank.logger.tail(event="notification_failed")[-1]
    assert failure["withdrawal_id"] == receipt.request.id
    assert "SMTP server unavailable" in failure["error"]


def test_list_for_user_returns_every_status_newest_first() -> None:
    bank, _, uma, cole = setup_bank()
    fund_goal(bank, uma, 1000)
    now = datetime.now(timezone.utc)
    older = bank.request_withdrawal(uma, 10, at=now - timedelta(hours=2))
    newer = bank.request_withdrawal(uma, 20, at=now)
    bank.reject_withdrawal(older.request.id, cole)

    listed = bank.list_withdrawals(uma)

    assert [request.id for request in listed] == [newer.request.id, older.request.id]
    assert [request.status for request in listed] == [WithdrawalStatus.PENDING, WithdrawalStatus.REJECTED]
    assert bank.list_withdrawals(cole) == []


def test_pending_list_fans_out_across_savers() -> None:
    bank, _, uma, cole = setup_bank()
    ben = bank.register(
        name="Ben",
        email="ben@example.com",
        password="secret",
        co_signer_email="CO@example.com",
    ).identity
    other = bank.register(
        name="Ola",
        email="ola@example.com",
        password="secret",
        co_signer_email="someone@example.com",
    ).identity
    for identity in (uma, ben, other):
        fund_goal(bank, identity, 100)

    uma_request = bank.request_withdrawal(uma, 10).request
    ben_request = bank.request_withdrawal(ben, 20).request
    resolved = bank.request_withdrawal(ben, 30).request
    bank.request_withdrawal(other, 40)
    bank.approve_withdrawal(resolved.id, cole)

    pending_ids = {request.id for request in bank.pending_for_co_signer(cole)}

    assert pending_ids == {uma_request.id, ben_request.id}
    assert bank.pending_for_co_signer(uma) == []


def test_concurrent_approvals_settle_exactly_once() -> None:
    bank, _, uma, cole = setup_bank()
    goal = fund_goal(bank, uma, 1000)
    receipt = bank.request_withdrawal(uma, 600)
    workers = 8
    barrier = threading.Barrier(workers)
    outcomes: list[str] = []

    def approve() -> None:
        barrier.wait()
        try:
            bank.approve_withdrawal(receipt.request.id, cole)
            outcomes.append("approved")
        except AlreadyProcessedError:
            outcomes.append("already")

    threads = [threading.Thread(target=approve) for _ in range(workers)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert outcomes.count("approved") == 1
    assert outcomes.count("already") == workers - 1
    assert bank.get_goal(uma, goal.id).current_amount == Decimal("400.00")
