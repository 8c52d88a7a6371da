"""SQLModel tables and the SQL backed record store for the CoSave web service."""
from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Iterator, List, Optional, Sequence

from sqlalchemy import update
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel import Field, Session, SQLModel, create_engine, desc, select

from ..exceptions import DependencyError, DuplicateGoalError, DuplicateUserError, GoalNotFoundError
from ..models import SavingGoal, User, WithdrawalRequest, WithdrawalStatus, normalize_email, utcnow
from ..money import from_cents, to_cents
from ..store import RecordStore


# ---------------------------------------------------------------------------
# Database models
# ---------------------------------------------------------------------------
class UserRecord(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(primary_key=True)
    name: str
    email: str = Field(index=True, unique=True)
    co_signer_email: str = Field(index=True)
    password_hash: str = ""
    created_at: datetime = Field(default_factory=utcnow)


class GoalRecord(SQLModel, table=True):
    __tablename__ = "saving_goals"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True, unique=True)  # one goal per user
    goal_name: str
    target_cents: int
    current_cents: int = 0
    lock_until: datetime
    created_at: datetime = Field(default_factory=utcnow)


class WithdrawalRecord(SQLModel, table=True):
    __tablename__ = "withdrawal_requests"

    id: str = Field(primary_key=True)
    user_id: str = Field(index=True)
    goal_id: str = Field(index=True)
    amount_cents: int
    status: str = Field(default=WithdrawalStatus.PENDING.value, index=True)  # pending|approved|rejected
    created_at: datetime = Field(default_factory=utcnow)
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[str] = None


def build_engine(path: str) -> Engine:
    return create_engine(
        f"sqlite:///{path}",
        echo=False,
        connect_args={"check_same_thread": False, "timeout": 30},
    )


def create_db_and_tables(engine: Engine) -> None:
    SQLModel.metadata.create_all(engine)


# ---------------------------------------------------------------------------
# Row <-> domain conversion
# ---------------------------------------------------------------------------
def _user(row: UserRecord) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        co_signer_email=row.co_signer_email,
        password_hash=row.password_hash,
        created_at=row.created_at,
    )


def _goal(row: GoalRecord) -> SavingGoal:
    return SavingGoal(
        id=row.id,
        user_id=row.user_id,
        goal_name=row.goal_name,
        target_amount=from_cents(row.target_cents),
        current_amount=from_cents(row.current_cents),
        lock_until=row.lock_until,
        created_at=row.created_at,
    )


def _withdrawal(row: WithdrawalRecord) -> WithdrawalRequest:
    return WithdrawalRequest(
        id=row.id,
        user_id=row.user_id,
        goal_id=row.goal_id,
        amount=from_cents(row.amount_cents),
        status=WithdrawalStatus(row.status),
        created_at=row.created_at,
        resolved_at=row.resolved_at,
        resolved_by=row.resolved_by,
    )


# ---------------------------------------------------------------------------
# Record store
# ---------------------------------------------------------------------------
class SqlRecordStore(RecordStore):
    """Record store backed by SQLModel.

    Outside ``transaction()`` every call runs in its own session and commits
    immediately. Inside, calls share one session that commits when the block
    exits cleanly and rolls back otherwise. Balance and status changes are
    single conditional ``UPDATE`` statements.
    """

    def __init__(self, engine: Engine, *, session: Session | None = None) -> None:
        self.engine = engine
        self._session = session

    @contextmanager
    def transaction(self) -> Iterator["SqlRecordStore"]:
        if self._session is not None:
            yield self
            return
        with Session(self.engine, expire_on_commit=False) as session:
            try:
                yield SqlRecordStore(self.engine, session=session)
                session.commit()
            except SQLAlchemyError as exc:
                session.rollback()
                raise DependencyError(f"Record store failure: {exc}") from exc
            except BaseException:
                session.rollback()
                raise

    @contextmanager
    def _scope(self) -> Iterator[Session]:
        if self._session is not None:
            yield self._session
            return
        with self.transaction() as bound:
            yield bound._session

    # Users -------------------------------------------------------------
    def add_user(self, user: User) -> User:
        with self._scope() as session:
            if session.exec(select(UserRecord).where(UserRecord.email == user.email)).first():
                raise DuplicateUserError("User already exists")
            session.add(
                UserRecord(
                    id=user.id,
                    name=user.name,
                    email=user.email,
                    co_signer_email=user.co_signer_email,
                    password_hash=user.password_hash,
                    created_at=user.created_at,
                )
            )
            try:
                session.flush()
            except IntegrityError as exc:
                raise DuplicateUserError("User already exists") from exc
        return user

    def get_user(self, user_id: str) -> Optional[User]:
        with self._scope() as session:
            row = session.get(UserRecord, user_id)
            return _user(row) if row else None

    def find_user_by_email(self, email: str) -> Optional[User]:
        with self._scope() as session:
            row = session.exec(select(UserRecord).where(UserRecord.email == normalize_email(email))).first()
            return _user(row) if row else None

    def find_users_by_co_signer(self, email: str) -> List[User]:
        with self._scope() as session:
            rows = session.exec(
                select(UserRecord).where(UserRecord.co_signer_email == normalize_email(email))
            ).all()
            return [_user(row) for row in rows]

    # Goals -------------------------------------------------------------
    def add_goal(self, goal: SavingGoal) -> SavingGoal:
        with self._scope() as session:
            if session.exec(select(GoalRecord).where(GoalRecord.user_id == goal.user_id)).first():
                raise DuplicateGoalError("Saving goal already exists")
            session.add(
                GoalRecord(
                    id=goal.id,
                    user_id=goal.user_id,
                    goal_name=goal.goal_name,
                    target_cents=to_cents(goal.target_amount),
                    current_cents=to_cents(goal.current_amount),
                    lock_until=goal.lock_until,
                    created_at=goal.created_at,
                )
            )
            try:
                session.flush()
            except IntegrityError as exc:
                raise DuplicateGoalError("Saving goal already exists") from exc
        return goal

    def get_goal(self, goal_id: str) -> Optional[SavingGoal]:
        with self._scope() as session:
            row = session.get(GoalRecord, goal_id, populate_existing=True)
            return _goal(row) if row else None

    def find_goal_for_user(self, user_id: str) -> Optional[SavingGoal]:
        with self._scope() as session:
            row = session.exec(
                select(GoalRecord).where(GoalRecord.user_id == user_id).execution_options(populate_existing=True)
            ).first()
            return _goal(row) if row else None

    def list_goals(self, user_id: str) -> List[SavingGoal]:
        with self._scope() as session:
            rows = session.exec(
                select(GoalRecord).where(GoalRecord.user_id == user_id).order_by(GoalRecord.created_at)
            ).all()
            return [_goal(row) for row in rows]

    def increment_goal(self, goal_id: str, amount: Decimal) -> SavingGoal:
        cents = to_cents(amount)
        with self._scope() as session:
            result = session.exec(
                update(GoalRecord)
                .where(GoalRecord.id == goal_id)
                .values(current_cents=GoalRecord.current_cents + cents)
            )
            if result.rowcount == 0:
                raise GoalNotFoundError(f"Saving goal '{goal_id}' does not exist.")
            return self._reload_goal(session, goal_id)

    def decrement_goal(self, goal_id: str, amount: Decimal) -> Optional[SavingGoal]:
        cents = to_cents(amount)
        with self._scope() as session:
            result = session.exec(
                update(GoalRecord)
                .where(GoalRecord.id == goal_id, GoalRecord.current_cents >= cents)
                .values(current_cents=GoalRecord.current_cents - cents)
            )
            if result.rowcount == 0:
                if session.get(GoalRecord, goal_id) is None:
                    raise GoalNotFoundError(f"Saving goal '{goal_id}' does not exist.")
                return None
            return self._reload_goal(session, goal_id)

    def _reload_goal(self, session: Session, goal_id: str) -> SavingGoal:
        row = session.get(GoalRecord, goal_id, populate_existing=True)
        return _goal(row)

    # Withdrawals -------------------------------------------------------
    def add_withdrawal(self, request: WithdrawalRequest) -> WithdrawalRequest:
        with self._scope() as session:
            session.add(
                WithdrawalRecord(
                    id=request.id,
                    user_id=request.user_id,
                    goal_id=request.goal_id,
                    amount_cents=to_cents(request.amount),
                    status=request.status.value,
                    created_at=request.created_at,
                    resolved_at=request.resolved_at,
                    resolved_by=request.resolved_by,
                )
            )
            session.flush()
        return request

    def get_withdrawal(self, withdrawal_id: str) -> Optional[WithdrawalRequest]:
        with self._scope() as session:
            row = session.get(WithdrawalRecord, withdrawal_id, populate_existing=True)
            return _withdrawal(row) if row else None

    def list_withdrawals(
        self,
        user_ids: Sequence[str],
        *,
        status: WithdrawalStatus | None = None,
    ) -> List[WithdrawalRequest]:
        if not user_ids:
            return []
        query = select(WithdrawalRecord).where(WithdrawalRecord.user_id.in_(list(user_ids)))
        if status is not None:
            query = query.where(WithdrawalRecord.status == status.value)
        with self._scope() as session:
            rows = session.exec(query.order_by(desc(WithdrawalRecord.created_at))).all()
            return [_withdrawal(row) for row in rows]

    def transition_withdrawal(
        self,
        withdrawal_id: str,
        status: WithdrawalStatus,
        *,
        resolved_by: str,
        resolved_at: datetime | None = None,
    ) -> Optional[WithdrawalRequest]:
        with self._scope() as session:
            result = session.exec(
                update(WithdrawalRecord)
                .where(
                    WithdrawalRecord.id == withdrawal_id,
                    WithdrawalRecord.status == WithdrawalStatus.PENDING.value,
                )
                .values(
                    status=WithdrawalStatus.decision(status).value,
                    resolved_by=normalize_email(resolved_by),
                    resolved_at=resolved_at or utcnow(),
                )
            )
            if result.rowcount == 0:
                return None
            row = session.get(WithdrawalRecord, withdrawal_id, populate_existing=True)
            return _withdrawal(row)


__all__ = [
    "GoalRecord",
    "SqlRecordStore",
    "UserRecord",
    "WithdrawalRecord",
    "build_engine",
    "create_db_and_tables",
]
