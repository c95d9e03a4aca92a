import asyncio
from datetime import timedelta
from urllib.parse import parse_qs, urlsplit

import pytest

from bookstore.auth import AuthService, PasswordHasher, normalize
from bookstore.errors import (
    ConfigurationError,
    ConflictError,
    InvalidArgumentError,
    InvalidTokenError,
    NotFoundError,
)
from bookstore.models import Role
from bookstore.tokens import AuthTokenPurpose

from conftest import NOW, FailingNotifier


def token_from(link):
    return parse_qs(urlsplit(link).query)["token"][0]


def register(service, username="alice", email="alice@example.com", password="Password1"):
    return asyncio.run(service.register_user(username, email, password))


def test_register_persists_normalized_user_and_sends_link(auth_service, users, notifier):
    user_id = register(auth_service, username=" Alice ", email="Alice@Example.com")

    user = users.get_user_by_id(user_id)
    assert user.username == " Alice "
    assert user.normalized_username == "ALICE"
    assert user.email == "ALICE@EXAMPLE.COM"
    assert user.normalized_email == "ALICE@EXAMPLE.COM"
    assert user.is_active and not user.is_deleted and not user.is_email_confirmed
    assert user.password_hash != "Password1"
    assert PasswordHasher().verify(user.password_hash, "Password1")
    assert [ur.role.name for ur in user.user_roles] == ["user"]
    assert user.email_confirmation_sent_at is not None

    assert len(notifier.sent) == 1
    kind, to_email, link = notifier.sent[0]
    assert kind == "email_confirmation"
    assert to_email == "ALICE@EXAMPLE.COM"
    assert link.startswith("https://shop.example/auth/confirm-email?token=")


def test_confirmation_token_is_bound_to_user_and_expires_in_24_hours(auth_service, codec, notifier):
    user_id = register(auth_service)

    payload = codec.try_validate_token(token_from(notifier.sent[0][2]), AuthTokenPurpose.EMAIL_CONFIRMATION)

    assert payload.user_id == user_id
    assert payload.expires_at_utc == NOW + timedelta(hours=24)


def test_register_admin_assigns_admin_role(auth_service, users):
    user_id = asyncio.run(auth_service.register_admin("root", "root@example.com", "Password1"))
    assert [ur.role.name for ur in users.get_user_by_id(user_id).user_roles] == ["admin"]


@pytest.mark.parametrize(
    "username, email, password, message",
    [
        ("", "a@example.com", "Password1", "required"),
        ("bob", "", "Password1", "required"),
        ("bob", "a@example.com", "", "required"),
        (None, "a@example.com", "Password1", "required"),
        ("bob", "not-an-email", "Password1", "email"),
        ("bob", "a@example", "Password1", "email"),
        ("bob", "a@example.com", "short1", "Password"),
        ("bob", "a@example.com", "lettersonly", "Password"),
        ("bob", "a@example.com", "12345678", "Password"),
        ("bob", "a@example.com", "Password1!", "Password"),
    ],
)
def test_register_rejects_invalid_input(auth_service, notifier, username, email, password, message):
    with pytest.raises(InvalidArgumentError) as exc_info:
        asyncio.run(auth_service.register_user(username, email, password))
    assert message in exc_info.value.message
    assert notifier.sent == []


def test_username_conflict_is_case_insensitive(auth_service):
    register(auth_service, username="bob", email="bob@example.com")

    with pytest.raises(ConflictError) as exc_info:
        register(auth_service, username="BOB", email="other@example.com")
    assert "username" in exc_info.value.message


def test_email_conflict_is_case_insensitive(auth_service):
    register(auth_service, username="bob", email="bob@example.com")

    with pytest.raises(ConflictError) as exc_info:
        register(auth_service, username="robert", email="BOB@Example.com")
    assert "email" in exc_info.value.message


def test_whitespace_padded_email_is_rejected_as_malformed(auth_service):
    with pytest.raises(InvalidArgumentError) as exc_info:
        register(auth_service, username="bob", email=" bob@example.com")
    assert "email" in exc_info.value.message


def test_username_differing_by_case_and_whitespace_is_a_conflict(auth_service):
    asyncio.run(auth_service.register_user("bob", "bob@x.com", "Passw0rd"))

    with pytest.raises(ConflictError) as exc_info:
        asyncio.run(auth_service.register_user("BOB ", "bob@x.com", "Passw0rd"))
    assert "username" in exc_info.value.message


def test_username_with_trailing_space_is_a_conflict(auth_service):
    register(auth_service, username="Alice", email="alice@example.com")

    with pytest.raises(ConflictError):
        register(auth_service, username="alice ", email="other@example.com")


def test_username_conflict_is_reported_before_email(auth_service):
    register(auth_service, username="bob", email="bob@example.com")

    with pytest.raises(ConflictError) as exc_info:
        register(auth_service, username="bob", email="bob@example.com")
    assert "username" in exc_info.value.message


def test_soft_deleted_user_does_not_block_registration(auth_service, users):
    user_id = register(auth_service, username="bob", email="bob@example.com")
    users.soft_delete(users.get_user_by_id(user_id))

    new_id = register(auth_service, username="bob", email="bob@example.com")
    assert new_id != user_id


def test_normalize_is_idempotent():
    for value in (" bob ", "Bob@Example.COM", "ÄNDREAS", ""):
        assert normalize(normalize(value)) == normalize(value)


def test_missing_role_is_a_configuration_error(auth_service, db_session, notifier):
    db_session.query(Role).filter(Role.name == "user").delete()
    db_session.commit()

    with pytest.raises(ConfigurationError):
        register(auth_service)
    assert notifier.sent == []


def test_email_failure_keeps_registered_user(users, codec, links, clock):
    service = AuthService(users, PasswordHasher(), codec, links, FailingNotifier(), clock=clock)

    with pytest.raises(ConnectionError):
        asyncio.run(service.register_user("carol", "carol@example.com", "Password1"))

    user = users.get_user_by_normalized_email("CAROL@EXAMPLE.COM")
    assert user is not None
    assert user.email_confirmation_sent_at is None


def test_confirm_email_marks_user_confirmed(auth_service, users, notifier):
    user_id = register(auth_service)

    auth_service.confirm_email(token_from(notifier.sent[0][2]))

    assert users.get_user_by_id(user_id).is_email_confirmed


def test_confirm_email_is_idempotent(auth_service, users, notifier):
    user_id = register(auth_service)
    token = token_from(notifier.sent[0][2])

    auth_service.confirm_email(token)
    auth_service.confirm_email(token)

    assert users.get_user_by_id(user_id).is_email_confirmed


def test_confirm_email_requires_token(auth_service):
    with pytest.raises(InvalidArgumentError):
        auth_service.confirm_email("")


def test_confirm_email_rejects_expired_token(auth_service, clock, notifier):
    register(auth_service)
    clock.now = NOW + timedelta(hours=24)

    with pytest.raises(InvalidTokenError):
        auth_service.confirm_email(token_from(notifier.sent[0][2]))


def test_confirm_email_rejects_token_for_other_purpose(auth_service, codec):
    user_id = register(auth_service)
    token = codec.create_token(AuthTokenPurpose.PASSWORD_RESET, user_id, NOW + timedelta(hours=1))

    with pytest.raises(InvalidTokenError):
        auth_service.confirm_email(token)


def test_confirm_email_for_unknown_user(auth_service, codec):
    token = codec.create_token(AuthTokenPurpose.EMAIL_CONFIRMATION, 999, NOW + timedelta(hours=1))

    with pytest.raises(NotFoundError):
        auth_service.confirm_email(token)


def test_resend_confirmation_sends_new_link(auth_service, clock, notifier, users):
    user_id = register(auth_service)
    clock.now = NOW + timedelta(hours=30)

    asyncio.run(auth_service.resend_confirmation("alice@EXAMPLE.com"))

    assert len(notifier.sent) == 2
    auth_service.confirm_email(token_from(notifier.sent[1][2]))
    assert users.get_user_by_id(user_id).is_email_confirmed


def test_resend_confirmation_skips_confirmed_user(auth_service, notifier):
    register(auth_service)
    auth_service.confirm_email(token_from(notifier.sent[0][2]))

    asyncio.run(auth_service.resend_confirmation("alice@example.com"))

    assert len(notifier.sent) == 1


def test_resend_confirmation_for_unknown_email(auth_service):
    with pytest.raises(NotFoundError):
        asyncio.run(auth_service.resend_confirmation("ghost@example.com"))
