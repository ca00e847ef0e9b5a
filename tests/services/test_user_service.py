# mypy: ignore-errors
# tests/services/test_user_service.py
"""Tests for the account service."""

from datetime import timedelta

import pytest
from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError

from litenotes.core import security
from litenotes.core.errors import (
    AuthenticationError,
    ConflictError,
    InvalidResetTokenError,
    KeyAccessError,
    LockoutError,
    MailDeliveryError,
    StorageError,
    ValidationError,
)
from litenotes.db.time import utcnow
from litenotes.models import Note, PasswordReset, User
from litenotes.services import keyring
from litenotes.services.envelope import EnvelopeCipher
from litenotes.services.user_service import AccountService
from tests.conftest import TEST_PASSWORD


def _reset_token_from_mail(mail_sender) -> str:
    text = mail_sender.outbox[-1].text
    return text.split("token=", 1)[1].split()[0]


# --- registration -----------------------------------------------------------------


def test_register_stores_hash_and_wrapped_key(accounts, db_session) -> None:
    user = accounts.register("  carol  ", "password123", "carol@example.com")

    assert user.id is not None
    assert user.username == "carol"
    assert user.password_hash != "password123"
    assert security.verify_password("password123", user.password_hash)
    assert user.has_key_material
    data_key = keyring.unwrap_data_key("password123", user.encryption_salt, user.wrapped_data_key)
    assert len(data_key) == 32


def test_register_without_email(accounts) -> None:
    user = accounts.register("carol", "password123")
    assert user.email is None


@pytest.mark.parametrize(
    ("username", "password", "email"),
    [
        ("ab", "password123", None),
        ("   ", "password123", None),
        ("carol", "short", None),
        ("carol", "123456", None),
        ("carol", "password123", "not-an-email"),
        ("carol", "password123", "carol@example..com"),
        ("carol", "password123", "carol@"),
    ],
)
def test_register_validation(accounts, username, password, email) -> None:
    with pytest.raises(ValidationError):
        accounts.register(username, password, email)


def test_register_password_length_boundary(accounts) -> None:
    """Seven characters is the shortest accepted password."""
    with pytest.raises(ValidationError):
        accounts.register("erin", "123456")
    assert accounts.register("erin", "1234567").username == "erin"


def test_register_normalizes_email(accounts) -> None:
    user = accounts.register("frank", "password123", "  Frank@Example.COM ")
    assert user.email == "Frank@example.com"


def test_username_whitespace_is_normalized_consistently(accounts, rate_limiter) -> None:
    """The same padded input registers, throttles and logs in as one account."""
    accounts.register("carol ", "password123")

    assert accounts.login("carol ", "password123").username == "carol"
    assert accounts.login(" carol", "password123").username == "carol"

    with pytest.raises(AuthenticationError):
        accounts.login("carol ", "wrong password")
    assert rate_limiter.attempts_for("carol").failure_count == 1
    assert rate_limiter.attempts_for("carol ") is None


def test_register_duplicate_username(accounts, test_user) -> None:
    with pytest.raises(ConflictError) as exc_info:
        accounts.register("alice", "another-password")
    assert exc_info.value.field == "username"
    assert exc_info.value.status_code == 409


def test_register_duplicate_email(accounts, test_user) -> None:
    with pytest.raises(ConflictError) as exc_info:
        accounts.register("alice2", "another-password", "alice@example.com")
    assert exc_info.value.field == "email"


def test_register_accounts_get_distinct_keys(accounts, key_cache, test_user, other_user) -> None:
    accounts.login("alice", TEST_PASSWORD)
    accounts.login("bob", "hunter2hunter2")
    assert key_cache.get(test_user.id) != key_cache.get(other_user.id)


# --- login / logout -----------------------------------------------------------------


def test_login_issues_token_and_caches_key(accounts, key_cache, test_user) -> None:
    result = accounts.login("alice", TEST_PASSWORD)

    claims = security.decode_access_token(result.access_token)
    assert claims.user_id == test_user.id
    assert claims.username == "alice"
    assert result.expires_at > utcnow()
    expected = keyring.unwrap_data_key(
        TEST_PASSWORD, test_user.encryption_salt, test_user.wrapped_data_key
    )
    assert key_cache.get(test_user.id) == expected


def test_cached_key_expires_with_token(accounts, clock, key_cache, test_user) -> None:
    from litenotes.core.settings import settings

    accounts.login("alice", TEST_PASSWORD)
    clock.advance(settings.access_token_ttl_seconds)
    assert key_cache.get(test_user.id) is None


def test_login_wrong_password(accounts, key_cache, rate_limiter, test_user) -> None:
    with pytest.raises(AuthenticationError) as exc_info:
        accounts.login("alice", "wrong password")
    assert exc_info.value.message == "Invalid credentials"
    assert key_cache.get(test_user.id) is None
    assert rate_limiter.attempts_for("alice").failure_count == 1


def test_login_unknown_user_matches_wrong_password(accounts) -> None:
    with pytest.raises(AuthenticationError) as exc_info:
        accounts.login("nobody", "whatever1")
    assert exc_info.value.message == "Invalid credentials"


def test_login_lockout_after_four_failures(accounts, clock, test_user) -> None:
    for _ in range(4):
        with pytest.raises(AuthenticationError):
            accounts.login("alice", "wrong password")

    # Locked out even with the correct password.
    with pytest.raises(LockoutError):
        accounts.login("alice", TEST_PASSWORD)

    clock.advance(300)
    assert accounts.login("alice", TEST_PASSWORD).user_id == test_user.id


def test_successful_login_resets_failures(accounts, rate_limiter, test_user) -> None:
    for _ in range(3):
        with pytest.raises(AuthenticationError):
            accounts.login("alice", "wrong password")
    accounts.login("alice", TEST_PASSWORD)
    assert rate_limiter.attempts_for("alice") is None


def test_login_with_corrupted_key_material(accounts, db_session, key_cache, test_user) -> None:
    """A matching password with an unusable wrapped key is a server error."""
    test_user.wrapped_data_key = EnvelopeCipher.seal("garbage", EnvelopeCipher.generate_key())
    db_session.commit()

    with pytest.raises(KeyAccessError) as exc_info:
        accounts.login("alice", TEST_PASSWORD)
    assert exc_info.value.status_code == 500
    assert key_cache.get(test_user.id) is None


def test_login_provisions_legacy_account(accounts, db_session, key_cache) -> None:
    """Accounts without key material get one, and their plaintext notes are sealed."""
    legacy = User(username="legacy", password_hash=security.hash_password("legacy-pass"))
    db_session.add(legacy)
    db_session.flush()
    db_session.add(Note(user_id=legacy.id, title="old title", content="old body"))
    db_session.commit()

    accounts.login("legacy", "legacy-pass")

    db_session.refresh(legacy)
    assert legacy.has_key_material
    data_key = key_cache.get(legacy.id)
    note = db_session.scalar(select(Note).where(Note.user_id == legacy.id))
    assert note.title != "old title"
    assert EnvelopeCipher.open(note.title, data_key).text() == "old title"
    assert EnvelopeCipher.open(note.content, data_key).text() == "old body"


def test_login_propagates_cache_failure(accounts, mocker, test_user) -> None:
    mocker.patch.object(accounts.key_cache, "put", side_effect=StorageError("Key cache unavailable"))
    with pytest.raises(StorageError):
        accounts.login("alice", TEST_PASSWORD)


def test_logout_evicts_key(accounts, key_cache, logged_in_user) -> None:
    accounts.logout(logged_in_user.id)
    assert key_cache.get(logged_in_user.id) is None


def test_logout_ignores_cache_failure(accounts, mocker, logged_in_user) -> None:
    mocker.patch.object(accounts.key_cache, "delete", side_effect=StorageError())
    accounts.logout(logged_in_user.id)


# --- password reset ---------------------------------------------------------------


def test_request_reset_sends_link_and_stores_hash(accounts, db_session, mail_sender, test_user) -> None:
    accounts.request_password_reset("alice@example.com")

    assert len(mail_sender.outbox) == 1
    mail = mail_sender.outbox[0]
    assert mail.to == "alice@example.com"
    assert "/reset-password?token=" in mail.text
    token = _reset_token_from_mail(mail_sender)

    stored = db_session.scalars(select(PasswordReset)).all()
    assert len(stored) == 1
    assert stored[0].token_hash == security.hash_reset_token(token)
    assert stored[0].token_hash != token


def test_request_reset_unknown_email_is_silent(accounts, db_session, mail_sender) -> None:
    accounts.request_password_reset("ghost@example.com")
    assert mail_sender.outbox == []
    assert db_session.scalars(select(PasswordReset)).all() == []


def test_request_reset_invalid_email(accounts) -> None:
    with pytest.raises(ValidationError):
        accounts.request_password_reset("nope")


def test_request_reset_mail_failure_discards_token(accounts, db_session, mail_sender, test_user) -> None:
    mail_sender.fail = True
    with pytest.raises(MailDeliveryError):
        accounts.request_password_reset("alice@example.com")
    assert db_session.scalars(select(PasswordReset)).all() == []


def test_reset_with_cached_key_preserves_notes(accounts, notes, db_session, mail_sender, logged_in_user) -> None:
    notes.create_note(logged_in_user.id, "kept", "still readable")
    accounts.request_password_reset("alice@example.com")
    token = _reset_token_from_mail(mail_sender)

    result = accounts.reset_password(token, "brand-new-password")

    assert result.data_key_rotated is False
    assert db_session.scalars(select(PasswordReset)).all() == []
    with pytest.raises(AuthenticationError):
        accounts.login("alice", TEST_PASSWORD)
    accounts.login("alice", "brand-new-password")
    [note] = notes.list_notes(logged_in_user.id)
    assert note.intact
    assert note.title.text() == "kept"


def test_reset_without_cached_key_rotates(accounts, notes, key_cache, mail_sender, logged_in_user) -> None:
    notes.create_note(logged_in_user.id, "lost", "gone")
    key_cache.clear()
    accounts.request_password_reset("alice@example.com")
    token = _reset_token_from_mail(mail_sender)

    result = accounts.reset_password(token, "brand-new-password")

    assert result.data_key_rotated is True
    accounts.login("alice", "brand-new-password")
    [note] = notes.list_notes(logged_in_user.id)
    assert not note.intact


def test_reset_token_is_single_use(accounts, mail_sender, test_user) -> None:
    accounts.request_password_reset("alice@example.com")
    token = _reset_token_from_mail(mail_sender)
    accounts.reset_password(token, "brand-new-password")

    with pytest.raises(InvalidResetTokenError):
        accounts.reset_password(token, "another-password")


def test_reset_consumes_all_outstanding_tokens(accounts, mail_sender, test_user) -> None:
    accounts.request_password_reset("alice@example.com")
    first = _reset_token_from_mail(mail_sender)
    accounts.request_password_reset("alice@example.com")
    second = _reset_token_from_mail(mail_sender)

    accounts.reset_password(second, "brand-new-password")

    with pytest.raises(InvalidResetTokenError):
        accounts.reset_password(first, "another-password")


def test_reset_token_expires(db_session, key_cache, rate_limiter, mail_sender, test_user) -> None:
    start = utcnow()
    current = {"now": start}
    service = AccountService(db_session, key_cache, rate_limiter, mail_sender, now=lambda: current["now"])
    service.request_password_reset("alice@example.com")
    token = _reset_token_from_mail(mail_sender)

    current["now"] = start + timedelta(minutes=60)

    with pytest.raises(InvalidResetTokenError):
        service.reset_password(token, "brand-new-password")


def test_reset_rejects_unknown_token_and_short_password(accounts) -> None:
    with pytest.raises(InvalidResetTokenError):
        accounts.reset_password("deadbeef", "brand-new-password")
    with pytest.raises(ValidationError):
        accounts.reset_password("deadbeef", "short")
    with pytest.raises(ValidationError):
        accounts.reset_password("", "brand-new-password")


def test_reset_clears_lockout(accounts, mail_sender, test_user) -> None:
    for _ in range(4):
        with pytest.raises(AuthenticationError):
            accounts.login("alice", "wrong password")
    accounts.request_password_reset("alice@example.com")
    accounts.reset_password(_reset_token_from_mail(mail_sender), "brand-new-password")

    assert accounts.login("alice", "brand-new-password").username == "alice"


def test_reset_is_all_or_nothing(accounts, db_session, mail_sender, mocker, test_user) -> None:
    """A failed commit leaves password, key material and token untouched."""
    accounts.request_password_reset("alice@example.com")
    token = _reset_token_from_mail(mail_sender)
    salt_before = test_user.encryption_salt
    wrapped_before = test_user.wrapped_data_key
    mocker.patch.object(db_session, "commit", side_effect=SQLAlchemyError("disk I/O error"))

    with pytest.raises(StorageError):
        accounts.reset_password(token, "brand-new-password")

    db_session.refresh(test_user)
    assert test_user.encryption_salt == salt_before
    assert test_user.wrapped_data_key == wrapped_before
    stored = db_session.scalars(select(PasswordReset)).all()
    assert [reset.token_hash for reset in stored] == [security.hash_reset_token(token)]
    assert accounts.login("alice", TEST_PASSWORD).user_id == test_user.id


def test_reset_token_consumed_by_concurrent_reset(accounts, db_session, mail_sender, mocker, test_user) -> None:
    """Only one of two resets racing on the same token may succeed."""
    accounts.request_password_reset("alice@example.com")
    token = _reset_token_from_mail(mail_sender)
    lookup = db_session.scalar

    def lookup_then_consume(statement, *args, **kwargs):
        found = lookup(statement, *args, **kwargs)
        if isinstance(found, PasswordReset):
            # The competing request deletes the row between lookup and claim.
            db_session.execute(
                delete(PasswordReset)
                .where(PasswordReset.id == found.id)
                .execution_options(synchronize_session=False)
            )
        return found

    mocker.patch.object(db_session, "scalar", side_effect=lookup_then_consume)

    with pytest.raises(InvalidResetTokenError):
        accounts.reset_password(token, "brand-new-password")

    mocker.stopall()
    db_session.refresh(test_user)
    assert security.verify_password(TEST_PASSWORD, test_user.password_hash)
