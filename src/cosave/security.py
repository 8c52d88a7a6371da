"""Identity and authorization helpers for CoSave."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import threading
from collections import deque
from datetime import datetime, timedelta, timezone
from typing import Deque, Dict, Optional

import bcrypt

from .exceptions import (
    AuthenticationError,
    InvalidCredentialsError,
    LoginLockedError,
    UnauthorizedError,
    UserNotFoundError,
    ValidationError,
)
from .models import Identity, RegistrationCommand, User, ensure_utc, new_id, normalize_email, utcnow
from .ops import StructuredLogger
from .store import RecordStore

# bcrypt only reads the first 72 bytes of a password.
BCRYPT_MAX_BYTES = 72


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    password_bytes = password.encode("utf-8")
    if len(password_bytes) > BCRYPT_MAX_BYTES:
        raise ValidationError(f"Password must be at most {BCRYPT_MAX_BYTES} bytes.")
    return bcrypt.hashpw(password_bytes, bcrypt.gensalt()).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash. Malformed hashes never match."""
    try:
        return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))
    except ValueError:
        return False


class TokenSigner:
    """Issue and validate HMAC-signed bearer tokens carrying ``user_id`` and email."""

    def __init__(self, secret: str, *, ttl: timedelta = timedelta(days=7)) -> None:
        if not secret:
            raise ValueError("A token secret is required.")
        self._secret = secret.encode("utf-8")
        self.ttl = ttl

    def _signature(self, payload: str) -> str:
        return hmac.new(self._secret, payload.encode("utf-8"), hashlib.sha256).hexdigest()

    def issue(self, identity: Identity, *, at: Optional[datetime] = None) -> str:
        now = ensure_utc(at) if at else utcnow()
        expires_at = int((now + self.ttl).timestamp())
        payload = f"{identity.user_id}:{identity.email}:{expires_at}"
        token_raw = f"{payload}:{self._signature(payload)}".encode("utf-8")
        return base64.urlsafe_b64encode(token_raw).decode("utf-8")

    def verify(self, token: str, *, at: Optional[datetime] = None) -> Identity:
        try:
            decoded = base64.urlsafe_b64decode(token.encode("utf-8")).decode("utf-8")
            # Emails may contain ':'; ids, expiry and signature never do.
            user_id, remainder = decoded.split(":", 1)
            email, expires_raw, signature = remainder.rsplit(":", 2)
            expires_at = datetime.fromtimestamp(int(expires_raw), tz=timezone.utc)
        except (ValueError, binascii.Error, UnicodeError) as exc:
            raise AuthenticationError("Invalid token") from exc
        payload = f"{user_id}:{email}:{expires_raw}"
        if not hmac.compare_digest(signature, self._signature(payload)):
            raise AuthenticationError("Invalid token")
        now = ensure_utc(at) if at else utcnow()
        if expires_at <= now:
            raise AuthenticationError("Token has expired")
        return Identity(user_id=user_id, email=email)


class IdentityProvider:
    """Register users, verify passwords and resolve bearer tokens to identities."""

    def __init__(
        self,
        store: RecordStore,
        signer: TokenSigner,
        *,
        logger: StructuredLogger | None = None,
        max_attempts: int = 5,
        lockout_minutes: int = 15,
    ) -> None:
        self._store = store
        self._signer = signer
        self._logger = logger or StructuredLogger()
        self._max_attempts = max_attempts
        self._lockout_window = timedelta(minutes=lockout_minutes)
        self._login_attempts: Dict[str, Deque[datetime]] = {}
        self._attempts_lock = threading.Lock()

    def register(self, command: RegistrationCommand) -> User:
        user = User(
            id=new_id(),
            name=command.name,
            email=command.email,
            co_signer_email=command.co_signer_email,
            password_hash=hash_password(command.password),
        )
        stored = self._store.add_user(user)
        self._logger.log("user_registered", user_id=stored.id)
        return stored

    def login(self, email: str, password: str, *, at: Optional[datetime] = None) -> str:
        key = normalize_email(email)
        if self.is_locked(key, at=at):
            raise LoginLockedError("Too many failed login attempts. Try again later.")
        user = self._store.find_user_by_email(key)
        if user is None:
            raise UserNotFoundError("User not found")
        if not verify_password(password or "", user.password_hash):
            self._record_attempt(key, success=False, at=at)
            self._logger.warning("login_failed", user_id=user.id)
            raise InvalidCredentialsError("Invalid credentials")
        self._record_attempt(key, success=True, at=at)
        return self._signer.issue(user.identity, at=at)

    def authenticate(self, token: str, *, at: Optional[datetime] = None) -> Identity:
        """Resolve a bearer token to the identity of an existing user."""

        if not token:
            raise AuthenticationError("Not authenticated")
        identity = self._signer.verify(token, at=at)
        user = self._store.get_user(identity.user_id)
        if user is None or user.email != identity.email:
            raise AuthenticationError("User not found")
        return identity

    def profile(self, identity: Identity) -> User:
        user = self._store.get_user(identity.user_id)
        if user is None:
            raise UserNotFoundError("User not found")
        return user

    # ------------------------------------------------------------------
    # Rate limiting helpers
    # ------------------------------------------------------------------
    def is_locked(self, email: str, *, at: Optional[datetime] = None) -> bool:
        now = ensure_utc(at) if at else utcnow()
        with self._attempts_lock:
            bucket = self._login_attempts.get(normalize_email(email))
            if not bucket:
                return False
            self._prune(bucket, now)
            return len(bucket) >= self._max_attempts

    def _record_attempt(self, email: str, *, success: bool, at: Optional[datetime]) -> None:
        now = ensure_utc(at) if at else utcnow()
        with self._attempts_lock:
            bucket = self._login_attempts.setdefault(email, deque())
            self._prune(bucket, now)
            if success:
                bucket.clear()
            else:
                bucket.append(now)

    def _prune(self, bucket: Deque[datetime], now: datetime) -> None:
        while bucket and now - bucket[0] > self._lockout_window:
            bucket.popleft()


class AuthorizationGate:
    """Decide whether an identity acts as a resource owner or as its co-signer."""

    def is_owner(self, identity: Identity, resource: object) -> bool:
        return getattr(resource, "user_id", None) == identity.user_id

    def is_co_signer(self, identity: Identity, owner: User) -> bool:
        designated = normalize_email(owner.co_signer_email)
        return bool(designated) and designated == normalize_email(identity.email)

    def require_co_signer(self, identity: Identity, owner: User) -> None:
        if not self.is_co_signer(identity, owner):
            raise UnauthorizedError("Not authorized")


__all__ = [
    "AuthorizationGate",
    "IdentityProvider",
    "TokenSigner",
    "hash_password",
    "verify_password",
]
