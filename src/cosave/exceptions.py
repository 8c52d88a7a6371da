"""Custom exception hierarchy for the CoSave package."""

from __future__ import annotations


class CoSaveError(Exception):
    """Base class for all CoSave specific errors."""

    status_code = 500


class ValidationError(CoSaveError, ValueError):
    """Raised when caller supplied input is missing or invalid."""

    status_code = 400


class DuplicateGoalError(ValidationError):
    """Raised when a user already owns a savings goal."""


class DuplicateUserError(ValidationError):
    """Raised when registering an email that is already taken."""


class InsufficientFundsError(ValidationError):
    """Raised when a withdrawal exceeds the funds held by a goal."""

    def __init__(self, message: str, *, available: object = None) -> None:
        super().__init__(message)
        self.available = available


class InvalidDecisionError(ValidationError):
    """Raised when a withdrawal resolution is neither approved nor rejected."""


class InvalidCredentialsError(ValidationError):
    """Raised when a password does not match the stored hash."""


class NotFoundError(CoSaveError, LookupError):
    """Raised when a record lookup fails."""

    status_code = 404


class GoalNotFoundError(NotFoundError):
    """Raised when a requested savings goal cannot be found."""


class NoGoalFoundError(GoalNotFoundError):
    """Raised when a withdrawal is requested by a user without a goal."""


class WithdrawalNotFoundError(NotFoundError):
    """Raised when a withdrawal request id is unknown."""


class UserNotFoundError(NotFoundError):
    """Raised when a user lookup fails."""


class UnauthorizedError(CoSaveError, PermissionError):
    """Raised when an identity may not act on a resource."""

    status_code = 403


class AlreadyProcessedError(CoSaveError):
    """Raised when resolving a withdrawal that has already been resolved."""

    status_code = 400


class AuthenticationError(CoSaveError):
    """Raised when a bearer credential is missing, forged or expired."""

    status_code = 401


class LoginLockedError(AuthenticationError):
    """Raised when too many failed logins were recorded for an email."""

    status_code = 429


class DependencyError(CoSaveError):
    """Raised when the record store or another collaborator fails."""

    status_code = 500


class NotificationError(DependencyError):
    """Raised when an outbound notification could not be delivered."""


__all__ = [
    "AlreadyProcessedError",
    "AuthenticationError",
    "CoSaveError",
    "DependencyError",
    "DuplicateGoalError",
    "DuplicateUserError",
    "GoalNotFoundError",
    "InsufficientFundsError",
    "InvalidCredentialsError",
    "InvalidDecisionError",
    "LoginLockedError",
    "NoGoalFoundError",
    "NotFoundError",
    "NotificationError",
    "UnauthorizedError",
    "UserNotFoundError",
    "ValidationError",
    "WithdrawalNotFoundError",
]
