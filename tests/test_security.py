from datetime import datetime, timedelta, timezone

import pytest

from cosave.exceptions import (
    AuthenticationError,
    DuplicateUserError,
    InvalidCredentialsError,
    LoginLockedError,
    UserNotFoundError,
    ValidationError,
)
from cosave.models import Identity, RegistrationCommand, User
from cosave.ops import StructuredLogger
from cosave.security import AuthorizationGate, IdentityProvider, TokenSigner, hash_password, verify_password
from cosave.store import MemoryRecordStore


def make_provider(**kwargs) -> IdentityProvider:
    return IdentityProvider(MemoryRecordStore(), TokenSigner("test-secret"), logger=StructuredLogger(), **kwargs)


def register(provider: IdentityProvider, email: str = "uma@example.com") -> User:
    return provider.register(
        RegistrationCommand(name="Uma", email=email, password="s3cret", co_signer_email="co@example.com")
    )


def test_password_hashes_are_salted_and_verifiable() -> None:
    first = hash_password("s3cret")
    second = hash_password("s3cret")

    assert first != second
    assert verify_password("s3cret", first)
    assert not verify_password("wrong", first)
    assert not verify_password("s3cret", "garbage")
    assert not verify_password("s3cret", "")
    assert first.startswith("$2")
    with pytest.raises(ValidationError):
        hash_password("x" * 73)


def test_token_round_trip_and_tampering() -> None:
    signer = TokenSigner("test-secret", ttl=timedelta(hours=1))
    identity = Identity(user_id="u1", email="uma@example.com")
    token = signer.issue(identity)

    assert signer.verify(token) == identity
    with pytest.raises(AuthenticationError):
        TokenSigner("other-secret").verify(token)
    with pytest.raises(AuthenticationError):
        signer.verify("not-a-token")
    with pytest.raises(AuthenticationError, match="expired"):
        signer.verify(token, at=datetime.now(timezone.utc) + timedelta(hours=2))


def test_register_normalizes_and_rejects_duplicates() -> None:
    provider = make_provider()
    user = register(provider, email=" Uma@Example.com ")

    assert user.email == "uma@example.com"
    assert user.password_hash.startswith("$2")
    assert verify_password("s3cret", user.password_hash)
    with pytest.raises(DuplicateUserError):
        register(provider, email="UMA@example.com")
    with pytest.raises(ValidationError):
        register(provider, email="co@example.com")


def test_login_issues_token_for_authenticate() -> None:
    provider = make_provider()
    user = register(provider)

    token = provider.login(" UMA@example.com", "s3cret")
    identity = provider.authenticate(token)

    assert identity == user.identity
    assert provider.profile(identity).name == "Uma"
    with pytest.raises(UserNotFoundError):
        provider.login("nobody@example.com", "s3cret")
    with pytest.raises(InvalidCredentialsError):
        provider.login("uma@example.com", "wrong")
    with pytest.raises(AuthenticationError):
        provider.authenticate("")


def test_authenticate_rejects_tokens_for_unknown_users() -> None:
    provider = make_provider()
    token = TokenSigner("test-secret").issue(Identity(user_id="ghost", email="ghost@example.com"))

    with pytest.raises(AuthenticationError):
        provider.authenticate(token)


def test_repeated_failures_lock_login_until_window_passes() -> None:
    provider = make_provider(max_attempts=3, lockout_minutes=15)
    register(provider)
    start = datetime.now(timezone.utc)

    for _ in range(3):
        with pytest.raises(InvalidCredentialsError):
            provider.login("uma@example.com", "wrong", at=start)

    assert provider.is_locked("uma@example.com", at=start)
    with pytest.raises(LoginLockedError):
        provider.login("uma@example.com", "s3cret", at=start)

    later = start + timedelta(minutes=16)
    assert provider.login("uma@example.com", "s3cret", at=later)
    assert not provider.is_locked("uma@example.com", at=later)


def test_gate_matches_owner_and_co_signer() -> None:
    gate = AuthorizationGate()
    owner = User(id="u1", name="Uma", email="uma@example.com", co_signer_email="co@example.com")
    # simulate a record stored before normalization was enforced
    owner.co_signer_email = " Co@Example.com "

    assert gate.is_co_signer(Identity(user_id="u2", email="co@example.com"), owner)
    assert not gate.is_co_signer(Identity(user_id="u1", email="uma@example.com"), owner)
    assert gate.is_owner(Identity(user_id="u1", email="uma@example.com"), owner.identity)
    assert not gate.is_owner(Identity(user_id="u2", email="co@example.com"), owner.identity)


def test_tokens_survive_colons_in_email() -> None:
    provider = make_provider()
    user = register(provider, email='"odd:name"@example.com')

    identity = provider.authenticate(provider.login('"odd:name"@example.com', "s3cret"))

    assert identity == user.identity
    assert identity.email == '"odd:name"@example.com'
