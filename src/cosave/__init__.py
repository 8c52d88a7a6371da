"""CoSave package: co-signed savings goals and withdrawal approvals."""

from .api import ApiExporter
from .emailing import EmailClient, EmailDispatcher
from .exceptions import (
    AlreadyProcessedError,
    AuthenticationError,
    CoSaveError,
    DependencyError,
    DuplicateGoalError,
    DuplicateUserError,
    GoalNotFoundError,
    InsufficientFundsError,
    InvalidCredentialsError,
    InvalidDecisionError,
    LoginLockedError,
    NoGoalFoundError,
    NotFoundError,
    NotificationError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
    WithdrawalNotFoundError,
)
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
from .notifications import Notification, NotificationCenter, NotificationDispatcher
from .ops import StructuredLogger
from .security import AuthorizationGate, IdentityProvider, TokenSigner
from .service import CoSave
from .store import MemoryRecordStore, RecordStore
from .withdrawals import WithdrawalEngine

__all__ = [
    "AddFundsCommand",
    "AlreadyProcessedError",
    "ApiExporter",
    "AuthenticationError",
    "AuthorizationGate",
    "CoSave",
    "CoSaveError",
    "CreateGoalCommand",
    "DependencyError",
    "DuplicateGoalError",
    "DuplicateUserError",
    "EmailClient",
    "EmailDispatcher",
    "GoalLedger",
    "GoalNotFoundError",
    "Identity",
    "IdentityProvider",
    "InsufficientFundsError",
    "InvalidCredentialsError",
    "InvalidDecisionError",
    "LoginLockedError",
    "MemoryRecordStore",
    "NoGoalFoundError",
    "NotFoundError",
    "Notification",
    "NotificationCenter",
    "NotificationDispatcher",
    "NotificationError",
    "RecordStore",
    "RegistrationCommand",
    "SavingGoal",
    "StructuredLogger",
    "TokenSigner",
    "UnauthorizedError",
    "User",
    "UserNotFoundError",
    "ValidationError",
    "WithdrawalCommand",
    "WithdrawalEngine",
    "WithdrawalNotFoundError",
    "WithdrawalReceipt",
    "WithdrawalRequest",
    "WithdrawalResolution",
    "WithdrawalStatus",
]
