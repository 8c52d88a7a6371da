"""Convert CoSave domain objects to JSON friendly dictionaries."""

from __future__ import annotations

from typing import Dict, Iterable, List

from .models import SavingGoal, User, WithdrawalReceipt, WithdrawalRequest, WithdrawalResolution


class ApiExporter:
    """Serialise records using the camelCase field names of the public API."""

    def user(self, user: User) -> Dict[str, object]:
        return {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "coSignerEmail": user.co_signer_email,
            "createdAt": user.created_at.isoformat(),
        }

    def goal(self, goal: SavingGoal) -> Dict[str, object]:
        return {
            "id": goal.id,
            "userId": goal.user_id,
            "goalName": goal.goal_name,
            "targetAmount": float(goal.target_amount),
            "currentAmount": float(goal.current_amount),
            "lockUntil": goal.lock_until.isoformat(),
            "progress": float(goal.progress()),
            "createdAt": goal.created_at.isoformat(),
        }

    def goals(self, goals: Iterable[SavingGoal]) -> List[Dict[str, object]]:
        return [self.goal(goal) for goal in goals]

    def withdrawal(self, request: WithdrawalRequest) -> Dict[str, object]:
        return {
            "id": request.id,
            "userId": request.user_id,
            "goalId": request.goal_id,
            "amount": float(request.amount),
            "status": request.status.value,
            "createdAt": request.created_at.isoformat(),
            "resolvedAt": request.resolved_at.isoformat() if request.resolved_at else None,
            "resolvedBy": request.resolved_by,
        }

    def withdrawals(self, requests: Iterable[WithdrawalRequest]) -> List[Dict[str, object]]:
        return [self.withdrawal(request) for request in requests]

    def receipt(self, receipt: WithdrawalReceipt) -> Dict[str, object]:
        return {
            "message": receipt.message,
            "withdrawal": self.withdrawal(receipt.request),
            "locked": receipt.locked,
            "lockUntil": receipt.lock_until.isoformat(),
            "coSignerNotified": receipt.notified,
        }

    def resolution(self, resolution: WithdrawalResolution) -> Dict[str, object]:
        return {
            "message": resolution.message,
            "status": resolution.status.value,
            "withdrawal": self.withdrawal(resolution.request),
            "currentAmount": float(resolution.goal_balance),
        }


__all__ = ["ApiExporter"]
