"""High level service wiring identity, goals and withdrawals together."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from .ledger import GoalLedger
from .models import (
    AddFundsCommand,
    CreateGoalCommand,
    Identity,
    RegistrationCommand,
    SavingGoal,
    User,
    WithdrawalCommand,
    WithdrawalReceipt,
    WithdrawalRequest,
    WithdrawalResolution,
    WithdrawalStatus,
)
from .money import AmountLike
from .notifications import NotificationCenter, NotificationDispatcher
from .ops import StructuredLogger
from .security import AuthorizationGate, IdentityProvider, TokenSigner
from .store import MemoryRecordStore, RecordStore
from .withdrawals import WithdrawalEngine


class CoSave:
    """Entry point for every operation a saver or co-signer can perform.

    Callers authenticate with :meth:`authenticate` and pass the resulting
    :class:`~cosave.models.Identity` to the goal and withdrawal operations.
    """

    __slots__ = (
        "_store",
        "_dispatcher",
        "_logger",
        "_gate",
        "_identity",
        "_ledger",
        "_withdrawals",
    )

    def __init__(
        self,
        *,
        store: RecordStore | None = None,
        dispatcher: NotificationDispatcher | None = None,
        token_secret: str = "change-this-token-secret",
        signer: TokenSigner | None = None,
        logger: StructuredLogger | None = None,
        max_login_attempts: int = 5,
        lockout_minutes: int = 15,
    ) -> None:
        self._store = store or MemoryRecordStore()
        self._dispatcher = dispatcher or NotificationCenter()
        self._logger = logger or StructuredLogger()
        self._gate = AuthorizationGate()
        self._identity = IdentityProvider(
            self._store,
            signer or TokenSigner(token_secret),
            logger=self._logger,
            max_attempts=max_login_attempts,
            lockout_minutes=lockout_minutes,
        )
        self._ledger = GoalLedger(self._store, gate=self._gate, logger=self._logger)
        self._withdrawals = WithdrawalEngine(
            self._store,
            self._dispatcher,
            gate=self._gate,
            logger=self._logger,
        )

    # ------------------------------------------------------------------
    # Identity
    # ------------------------------------------------------------------
    def register(
        self,
        *,
        name: str,
        email: str,
        password: str,
        co_signer_email: str,
    ) -> User:
        command = RegistrationCommand(
            name=name,
            email=email,
            password=password,
            co_signer_email=co_signer_email,
        )
        return self._identity.register(command)

    def login(self, email: str, password: str) -> str:
        return self._identity.login(email, password)

    def authenticate(self, token: str) -> Identity:
        return self._identity.authenticate(token)

    def profile(self, identity: Identity) -> User:
        return self._identity.profile(identity)

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------
    def create_goal(
        self,
        identity: Identity,
        *,
        goal_name: str,
        target_amount: AmountLike,
        lock_until: datetime | str,
    ) -> SavingGoal:
        command = CreateGoalCommand(goal_name=goal_name, target_amount=target_amount, lock_until=lock_until)
        return self._ledger.create_goal(identity.user_id, command)

    def add_funds(self, identity: Identity, amount: AmountLike) -> SavingGoal:
        return self._ledger.add_funds(identity.user_id, AddFundsCommand(amount=amount))

    def list_goals(self, identity: Identity) -> List[SavingGoal]:
        return self._ledger.list_goals(identity.user_id)

    def get_goal(self, identity: Identity, goal_id: str) -> SavingGoal:
        return self._ledger.get_goal(identity, goal_id)

    # ------------------------------------------------------------------
    # Withdrawals
    # ------------------------------------------------------------------
    def request_withdrawal(
        self,
        identity: Identity,
        amount: AmountLike,
        *,
        at: Optional[datetime] = None,
    ) -> WithdrawalReceipt:
        return self._withdrawals.request_withdrawal(identity.user_id, WithdrawalCommand(amount=amount), at=at)

    def resolve_withdrawal(
        self,
        withdrawal_id: str,
        identity: Identity,
        decision: str | WithdrawalStatus,
    ) -> WithdrawalResolution:
        return self._withdrawals.approve_or_reject(withdrawal_id, identity, decision)

    def approve_withdrawal(self, withdrawal_id: str, identity: Identity) -> WithdrawalResolution:
        return self.resolve_withdrawal(withdrawal_id, identity, WithdrawalStatus.APPROVED)

    def reject_withdrawal(self, withdrawal_id: str, identity: Identity) -> WithdrawalResolution:
        return self.resolve_withdrawal(withdrawal_id, identity, WithdrawalStatus.REJECTED)

    def list_withdrawals(self, identity: Identity) -> List[WithdrawalRequest]:
        return self._withdrawals.list_for_user(identity.user_id)

    def pending_for_co_signer(self, identity: Identity) -> List[WithdrawalRequest]:
        return self._withdrawals.list_pending_for_co_signer(identity)

    # ------------------------------------------------------------------
    # Collaborators
    # ------------------------------------------------------------------
    @property
    def store(self) -> RecordStore:
        return self._store

    @property
    def dispatcher(self) -> NotificationDispatcher:
        return self._dispatcher

    @property
    def logger(self) -> StructuredLogger:
        return self._logger

    @property
    def gate(self) -> AuthorizationGate:
        return self._gate


__all__ = ["CoSave"]
