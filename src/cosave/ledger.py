"""Goal ledger: creation, funding and read access to savings goals."""

from __future__ import annotations

from typing import List

from .exceptions import GoalNotFoundError
from .models import AddFundsCommand, CreateGoalCommand, Identity, SavingGoal, new_id
from .ops import StructuredLogger
from .security import AuthorizationGate
from .store import RecordStore


class GoalLedger:
    """Own the lifecycle of each user's single :class:`SavingGoal`."""

    def __init__(
        self,
        store: RecordStore,
        *,
        gate: AuthorizationGate | None = None,
        logger: StructuredLogger | None = None,
    ) -> None:
        self._store = store
        self._gate = gate or AuthorizationGate()
        self._logger = logger or StructuredLogger()

    def create_goal(self, user_id: str, command: CreateGoalCommand) -> SavingGoal:
        goal = SavingGoal(
            id=new_id(),
            user_id=user_id,
            goal_name=command.goal_name,
            target_amount=command.target_amount,
            lock_until=command.lock_until,
        )
        with self._store.transaction() as tx:
            created = tx.add_goal(goal)
        self._logger.log(
            "goal_created",
            user_id=user_id,
            goal_id=created.id,
            target=float(created.target_amount),
            lock_until=created.lock_until.isoformat(),
        )
        return created

    def add_funds(self, user_id: str, command: AddFundsCommand) -> SavingGoal:
        with self._store.transaction() as tx:
            goal = tx.find_goal_for_user(user_id)
            if goal is None:
                raise GoalNotFoundError("Saving goal not found")
            updated = tx.increment_goal(goal.id, command.amount)
        self._logger.log(
            "funds_added",
            user_id=user_id,
            goal_id=updated.id,
            amount=float(command.amount),
            balance=float(updated.current_amount),
        )
        return updated

    def list_goals(self, user_id: str) -> List[SavingGoal]:
        return self._store.list_goals(user_id)

    def get_goal(self, identity: Identity, goal_id: str) -> SavingGoal:
        # Someone else's goal reads as missing rather than forbidden.
        goal = self._store.get_goal(goal_id)
        if goal is None or not self._gate.is_owner(identity, goal):
            raise GoalNotFoundError("Saving goal not found")
        return goal


__all__ = ["GoalLedger"]
