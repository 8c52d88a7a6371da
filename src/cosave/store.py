"""Record store interface and the in-memory implementation used by tests."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import ContextManager, Dict, Iterable, Iterator, List, Optional, Sequence

from .exceptions import DuplicateGoalError, DuplicateUserError, GoalNotFoundError
from .models import (
    SavingGoal,
    User,
    WithdrawalRequest,
    WithdrawalStatus,
    normalize_email,
    utcnow,
)


class RecordStore(ABC):
    """Durable keyed storage for users, goals and withdrawal requests.

    Every method is atomic on its own. ``transaction()`` groups several calls
    so that they commit together or not at all; the goal balance and
    withdrawal status updates are conditional so concurrent writers cannot
    lose updates.
    """

    @abstractmethod
    def transaction(self) -> ContextManager["RecordStore"]:
        """Return a context manager yielding a store bound to one unit of work."""

    # Users -------------------------------------------------------------
    @abstractmethod
    def add_user(self, user: User) -> User:
        """Persist ``user``; raise :class:`DuplicateUserError` if the email is taken."""

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[User]:
        ...

    @abstractmethod
    def find_user_by_email(self, email: str) -> Optional[User]:
        ...

    @abstractmethod
    def find_users_by_co_signer(self, email: str) -> List[User]:
        ...

    # Goals -------------------------------------------------------------
    @abstractmethod
    def add_goal(self, goal: SavingGoal) -> SavingGoal:
        """Persist ``goal``; raise :class:`DuplicateGoalError` if the user has one."""

    @abstractmethod
    def get_goal(self, goal_id: str) -> Optional[SavingGoal]:
        ...

    @abstractmethod
    def find_goal_for_user(self, user_id: str) -> Optional[SavingGoal]:
        ...

    @abstractmethod
    def list_goals(self, user_id: str) -> List[SavingGoal]:
        ...

    @abstractmethod
    def increment_goal(self, goal_id: str, amount: Decimal) -> SavingGoal:
        """Atomically add ``amount`` to the goal balance and return the new state."""

    @abstractmethod
    def decrement_goal(self, goal_id: str, amount: Decimal) -> Optional[SavingGoal]:
        """Atomically subtract ``amount`` unless the balance would go negative.

        Returns ``None`` when the balance is smaller than ``amount``.
        """

    # Withdrawals -------------------------------------------------------
    @abstractmethod
    def add_withdrawal(self, request: WithdrawalRequest) -> WithdrawalRequest:
        ...

    @abstractmethod
    def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRequest]:
        ...

    @abstractmethod
    def list_withdrawals(
        self,
        user_ids: Sequence[str],
        *,
        status: WithdrawalStatus | None = None,
    ) -> List[WithdrawalRequest]:
        """Return requests owned by any of ``user_ids``, newest first."""

    @abstractmethod
    def transition_withdrawal(
        self,
        withdrawal_id: str,
        status: WithdrawalStatus,
        *,
        resolved_by: str,
        resolved_at: datetime | None = None,
    ) -> Optional[WithdrawalRequest]:
        """Move a pending request to ``status``.

        Returns ``None`` if the request is no longer pending.
        """


def _newest_first(requests: Iterable[WithdrawalRequest]) -> List[WithdrawalRequest]:
    return sorted(requests, key=lambda request: request.created_at, reverse=True)


class MemoryRecordStore(RecordStore):
    """Thread-safe in-process store.

    A single re-entrant lock serialises every operation. The outermost
    ``transaction()`` snapshots all tables and restores them if the block
    raises. Records are copied on the way in and out so callers never hold
    references to stored state.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._users: Dict[str, User] = {}
        self._goals: Dict[str, SavingGoal] = {}
        self._withdrawals: Dict[str, WithdrawalRequest] = {}

    @contextmanager
    def transaction(self) -> Iterator["MemoryRecordStore"]:
        with self._lock:
            outermost = self._depth == 0
            snapshot = self._snapshot() if outermost else None
            self._depth += 1
            try:
                yield self
            except BaseException:
                if snapshot is not None:
                    self._users, self._goals, self._withdrawals = snapshot
                raise
            finally:
                self._depth -= 1

    def _snapshot(self):
        return (
            {key: replace(value) for key, value in self._users.items()},
            {key: replace(value) for key, value in self._goals.items()},
            {key: replace(value) for key, value in self._withdrawals.items()},
        )

    # Users -------------------------------------------------------------
    def add_user(self, user: User) -> User:
        with self._lock:
            if self._find_user(user.email) is not None:
                raise DuplicateUserError("User already exists")
            self._users[user.id] = replace(user)
            return replace(user)

    def get_user(self, user_id: str) -> Optional[User]:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user else None

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self._lock:
            user = self._find_user(email)
            return replace(user) if user else None

    def find_users_by_co_signer(self, email: str) -> List[User]:
        target = normalize_email(email)
        with self._lock:
            return [replace(user) for user in self._users.values() if user.co_signer_email == target]

    def _find_user(self, email: str) -> Optional[User]:
        target = normalize_email(email)
        return next((user for user in self._users.values() if user.email == target), None)

    # Goals -------------------------------------------------------------
    def add_goal(self, goal: SavingGoal) -> SavingGoal:
        with self._lock:
            if any(existing.user_id == goal.user_id for existing in self._goals.values()):
                raise DuplicateGoalError("Saving goal already exists")
            self._goals[goal.id] = replace(goal)
            return replace(goal)

    def get_goal(self, goal_id: str) -> Optional[SavingGoal]:
        with self._lock:
            goal = self._goals.get(goal_id)
            return replace(goal) if goal else None

    def find_goal_for_user(self, user_id: str) -> Optional[SavingGoal]:
        with self._lock:
            goal = next((goal for goal in self._goals.values() if goal.user_id == user_id), None)
            return replace(goal) if goal else None

    def list_goals(self, user_id: str) -> List[SavingGoal]:
        with self._lock:
            return [replace(goal) for goal in self._goals.values() if goal.user_id == user_id]

    def increment_goal(self, goal_id: str, amount: Decimal) -> SavingGoal:
        with self._lock:
            goal = self._require_goal(goal_id)
            goal.current_amount += amount
            return replace(goal)

    def decrement_goal(self, goal_id: str, amount: Decimal) -> Optional[SavingGoal]:
        with self._lock:
            goal = self._require_goal(goal_id)
            if goal.current_amount < amount:
                return None
            goal.current_amount -= amount
            return replace(goal)

    def _require_goal(self, goal_id: str) -> SavingGoal:
        try:
            return self._goals[goal_id]
        except KeyError as exc:
            raise GoalNotFoundError(f"Saving goal '{goal_id}' does not exist.") from exc

    # Withdrawals -------------------------------------------------------
    def add_withdrawal(self, request: WithdrawalRequest) -> WithdrawalRequest:
        with self._lock:
            self._withdrawals[request.id] = replace(request)
            return replace(request)

    def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRequest]:
        with self._lock:
            request = self._withdrawals.get(withdrawal_id)
            return replace(request) if request else None

    def list_withdrawals(
        self,
        user_ids: Sequence[str],
        *,
        status: WithdrawalStatus | None = None,
    ) -> List[WithdrawalRequest]:
        owners = set(user_ids)
        with self._lock:
            matches = [
                replace(request)
                for request in self._withdrawals.values()
                if request.user_id in owners and (status is None or request.status is status)
            ]
        return _newest_first(matches)

    def transition_withdrawal(
        self,
        withdrawal_id: str,
        status: WithdrawalStatus,
        *,
        resolved_by: str,
        resolved_at: datetime | None = None,
    ) -> Optional[WithdrawalRequest]:
        with self._lock:
            request = self._withdrawals.get(withdrawal_id)
            if request is None or not request.is_pending:
                return None
            request.resolve(status, resolved_by, when=resolved_at or utcnow())
            return replace(request)


__all__ = ["MemoryRecordStore", "RecordStore"]
