"""Withdrawal engine: the pending -> approved/rejected state machine.

A saver files a request against their goal; nothing is deducted until the
co-signer named on the saver's profile approves it. Requests may be filed
while the goal is still locked, because release always needs co-signer
review. Approval re-checks the balance inside the same store transaction
as the status change, so an approval either settles in full or leaves the
request pending.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from .exceptions import (
    AlreadyProcessedError,
    InsufficientFundsError,
    NoGoalFoundError,
    UserNotFoundError,
    WithdrawalNotFoundError,
)
from .models import (
    Identity,
    SavingGoal,
    User,
    WithdrawalCommand,
    WithdrawalReceipt,
    WithdrawalRequest,
    WithdrawalResolution,
    WithdrawalStatus,
    new_id,
    utcnow,
)
from .money import ZERO, format_amount
from .notifications import NotificationDispatcher, withdrawal_requested_message
from .ops import StructuredLogger
from .security import AuthorizationGate
from .store import RecordStore

REQUEST_SENT = "Withdrawal request sent to co-signer"
APPROVED = "Withdrawal approved and processed"
REJECTED = "Withdrawal rejected"


def insufficient_funds(available) -> InsufficientFundsError:
    return InsufficientFundsError(
        f"Insufficient funds in saving goal. You can withdraw up to {format_amount(available)}",
        available=available,
    )


class WithdrawalEngine:
    """Create withdrawal requests and settle them on co-signer decisions."""

    def __init__(
        self,
        store: RecordStore,
        dispatcher: NotificationDispatcher,
        *,
        gate: AuthorizationGate | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self._store = store
        self._dispatcher = dispatcher
        self._gate = gate or AuthorizationGate()
        self._logger = logger or StructuredLogger()

    # ------------------------------------------------------------------
    # Requests
    # ------------------------------------------------------------------
    def request_withdrawal(
        self,
        user_id: str,
        command: WithdrawalCommand,
        *,
        at: Optional[datetime] = None,
    ) -> WithdrawalReceipt:
        moment = at or utcnow()
        with self._store.transaction() as tx:
            goal = tx.find_goal_for_user(user_id)
            if goal is None:
                raise NoGoalFoundError("No saving goal found")
            if not goal.can_cover(command.amount):
                raise insufficient_funds(goal.current_amount)
            request = tx.add_withdrawal(
                WithdrawalRequest(
                    id=new_id(),
                    user_id=user_id,
                    goal_id=goal.id,
                    amount=command.amount,
                    created_at=moment,
                )
            )
            owner = tx.get_user(user_id)

        locked = goal.is_locked(at=moment)
        self._logger.log(
            "withdrawal_requested",
            user_id=user_id,
            withdrawal_id=request.id,
            amount=float(request.amount),
            locked=locked,
        )
        notified = self._notify_co_signer(owner, goal, request, locked=locked)
        return WithdrawalReceipt(
            request=request,
            message=REQUEST_SENT,
            locked=locked,
            lock_until=goal.lock_until,
            notified=notified,
        )

    def _notify_co_signer(
        self,
        owner: Optional[User],
        goal: SavingGoal,
        request: WithdrawalRequest,
        *,
        locked: bool,
    ) -> bool:
        if owner is None or not owner.co_signer_email:
            self._logger.warning("notification_skipped", withdrawal_id=request.id, reason="no co-signer")
            return False
        subject, body = withdrawal_requested_message(
            owner.name,
            request,
            goal_name=goal.goal_name,
            locked=locked,
            lock_until=goal.lock_until,
        )
        try:
            self._dispatcher.send(owner.co_signer_email, subject, body)
        except Exception as exc:  # delivery is best effort
            self._logger.error(
                "notification_failed",
                withdrawal_id=request.id,
                error=f"{type(exc).__name__}: {exc}",
            )
            return False
        return True

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------
    def approve_or_reject(
        self,
        withdrawal_id: str,
        identity: Identity,
        decision: str | WithdrawalStatus,
        *,
        at: Optional[datetime] = None,
    ) -> WithdrawalResolution:
        status = WithdrawalStatus.decision(decision)
        with self._store.transaction() as tx:
            request = tx.get_withdrawal(withdrawal_id)
            if request is None:
                raise WithdrawalNotFoundError("Withdrawal not found")
            owner = tx.get_user(request.user_id)
            if owner is None:
                raise UserNotFoundError("User not found")
            self._gate.require_co_signer(identity, owner)
            if not request.is_pending:
                raise AlreadyProcessedError("Withdrawal already processed")

            resolved = tx.transition_withdrawal(
                withdrawal_id,
                status,
                resolved_by=identity.email,
                resolved_at=at or utcnow(),
            )
            if resolved is None:
                raise AlreadyProcessedError("Withdrawal already processed")

            goal = tx.get_goal(request.goal_id) or tx.find_goal_for_user(owner.id)
            if status is WithdrawalStatus.APPROVED:
                if goal is None:
                    raise NoGoalFoundError("No saving goal found")
                settled = tx.decrement_goal(goal.id, resolved.amount)
                if settled is None:
                    # Leaving the block with an error rolls back the status change too.
                    raise insufficient_funds(goal.current_amount)
                goal = settled
        balance = goal.current_amount if goal is not None else ZERO
        self._logger.log(
            "withdrawal_resolved",
            withdrawal_id=withdrawal_id,
            status=status.value,
            co_signer=identity.email,
            balance=float(balance),
        )
        message = APPROVED if status is WithdrawalStatus.APPROVED else REJECTED
        return WithdrawalResolution(request=resolved, goal_balance=balance, message=message)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def list_for_user(self, user_id: str) -> List[WithdrawalRequest]:
        return self._store.list_withdrawals([user_id])

    def list_pending_for_co_signer(self, identity: Identity) -> List[WithdrawalRequest]:
        savers = self._store.find_users_by_co_signer(identity.email)
        if not savers:
            return []
        return self._store.list_withdrawals(
            [saver.id for saver in savers],
            status=WithdrawalStatus.PENDING,
        )


__all__ = ["WithdrawalEngine"]
