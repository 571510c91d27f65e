"""
StartupVista - Session issuer tests
Local and Firebase sign-in against a real (SQLite) credential store.
"""

import pytest
from sqlalchemy import func, select

from startupvista.core.errors import (
    AuthorizationError,
    DuplicateEmailError,
    FederatedTokenExpiredError,
    FederatedTokenInvalidError,
    InvalidCredentialsError,
    RoleRequiredError,
    TokenWrongTypeError,
)
from startupvista.core.roles import AuthProvider, Role
from startupvista.core.tokens import TokenCodec
from startupvista.models.models import User
from startupvista.services.credential_store import CredentialStore
from startupvista.services.session_issuer import SessionIssuer


@pytest.fixture
def codec():
    return TokenCodec("issuer-test-secret")


@pytest.fixture
def store(db_session):
    return CredentialStore(db_session)


@pytest.fixture
def issuer(store, codec, fake_bridge):
    return SessionIssuer(store, codec, fake_bridge, bcrypt_rounds=4)


async def count_users(db_session) -> int:
    result = await db_session.execute(select(func.count()).select_from(User))
    return result.scalar_one()


# =============================================================================
# Local accounts
# =============================================================================

@pytest.mark.anyio
async def test_register_then_login_issue_distinct_tokens_for_same_identity(issuer, codec):
    registered = await issuer.register_local("Alice", "a@x.com", "secret1", "startup")
    logged_in = await issuer.login_local("a@x.com", "secret1")

    assert registered.created is True
    assert registered.token != logged_in.token

    first = codec.verify_access_token(registered.token)
    second = codec.verify_access_token(logged_in.token)
    assert first.subject_id == second.subject_id == registered.user["id"]
    assert first.identity.role is Role.STARTUP
    assert second.identity.role is Role.STARTUP


@pytest.mark.anyio
async def test_register_never_exposes_password_hash(issuer):
    result = await issuer.register_local("Alice", "a@x.com", "secret1", "investor")
    assert "password_hash" not in result.user
    assert "password" not in result.user
    assert result.user["provider"] == "local"
    assert result.user["is_verified"] is False


@pytest.mark.anyio
async def test_register_duplicate_email(issuer):
    await issuer.register_local("Alice", "a@x.com", "secret1", "startup")
    with pytest.raises(DuplicateEmailError):
        await issuer.register_local("Alice 2", "A@X.com", "other12", "investor")


@pytest.mark.anyio
async def test_register_rejects_unknown_role(issuer, db_session):
    with pytest.raises(RoleRequiredError):
        await issuer.register_local("Alice", "a@x.com", "secret1", "admin")
    assert await count_users(db_session) == 0


@pytest.mark.anyio
async def test_login_wrong_password_and_unknown_email_look_the_same(issuer):
    await issuer.register_local("Alice", "a@x.com", "secret1", "startup")

    with pytest.raises(InvalidCredentialsError) as wrong_password:
        await issuer.login_local("a@x.com", "wrong-password")
    with pytest.raises(InvalidCredentialsError) as unknown_email:
        await issuer.login_local("nobody@x.com", "secret1")

    assert wrong_password.value.message == unknown_email.value.message
    assert wrong_password.value.error_code == unknown_email.value.error_code


@pytest.mark.anyio
async def test_login_rejects_federated_only_account(issuer, fake_bridge):
    fake_bridge.add("fb-token", uid="uid-1", email="f@x.com")
    await issuer.authenticate_federated("fb-token", "investor")

    with pytest.raises(InvalidCredentialsError):
        await issuer.login_local("f@x.com", "anything")


@pytest.mark.anyio
async def test_login_inactive_account_forbidden(issuer, store):
    result = await issuer.register_local("Alice", "a@x.com", "secret1", "startup")
    user = await store.find_by_email("a@x.com")
    user.is_active = False
    await store.save(user)

    with pytest.raises(AuthorizationError):
        await issuer.login_local("a@x.com", "secret1")
    assert result.user["id"] == user.id


# =============================================================================
# Firebase accounts
# =============================================================================

@pytest.mark.anyio
async def test_federated_sign_up_with_role(issuer, fake_bridge, codec):
    fake_bridge.add("fb-token", uid="uid-1", email="f@x.com", name="Fed", picture="http://img")

    result = await issuer.authenticate_federated("fb-token", "consultant")

    assert result.created is True
    assert result.user["provider"] == "federated"
    assert result.user["role"] == "consultant"
    assert result.user["avatar_url"] == "http://img"
    claims = codec.verify_access_token(result.token)
    assert claims.identity.federated_subject_id == "uid-1"


@pytest.mark.anyio
async def test_federated_new_identity_without_role(issuer, fake_bridge, db_session):
    fake_bridge.add("fb-token", uid="uid-1", email="f@x.com", name="Fed")

    for _ in range(2):
        with pytest.raises(RoleRequiredError) as exc_info:
            await issuer.authenticate_federated("fb-token")
        profile = exc_info.value.details[0]
        assert profile["firebase_uid"] == "uid-1"
        assert profile["email"] == "f@x.com"
        assert profile["name"] == "Fed"

    assert await count_users(db_session) == 0


@pytest.mark.anyio
async def test_federated_login_links_existing_local_account(issuer, fake_bridge, store):
    local = await issuer.register_local("Alice", "a@x.com", "secret1", "startup")
    fake_bridge.add("fb-token", uid="uid-alice", email="a@x.com", email_verified=True)

    # Role is ignored for an existing identity
    result = await issuer.authenticate_federated("fb-token", "investor")

    assert result.created is False
    assert result.user["id"] == local.user["id"]
    assert result.user["email"] == "a@x.com"
    assert result.user["role"] == "startup"
    assert result.user["provider"] == "federated"
    assert result.user["is_verified"] is True

    linked = await store.find_by_federated_subject("uid-alice")
    assert linked is not None and linked.id == local.user["id"]


@pytest.mark.anyio
async def test_unverified_federated_email_does_not_link_local_account(issuer, fake_bridge, store):
    local = await issuer.register_local("Alice", "a@x.com", "secret1", "startup")
    fake_bridge.add("fb-token", uid="uid-other", email="a@x.com", email_verified=False)

    with pytest.raises(AuthorizationError):
        await issuer.authenticate_federated("fb-token")

    assert await store.find_by_federated_subject("uid-other") is None
    untouched = await store.find_by_id(local.user["id"])
    assert untouched.firebase_uid is None
    assert untouched.provider == AuthProvider.LOCAL


@pytest.mark.anyio
async def test_linked_account_keeps_password_login(issuer, fake_bridge):
    await issuer.register_local("Alice", "a@x.com", "secret1", "startup")
    fake_bridge.add("fb-token", uid="uid-alice", email="a@x.com")
    await issuer.authenticate_federated("fb-token")

    result = await issuer.login_local("a@x.com", "secret1")
    assert result.user["provider"] == "federated"


@pytest.mark.anyio
async def test_federated_returning_user_matched_by_uid(issuer, fake_bridge):
    fake_bridge.add("first", uid="uid-1", email="f@x.com")
    created = await issuer.authenticate_federated("first", "investor")

    fake_bridge.add("second", uid="uid-1", email="f@x.com")
    again = await issuer.authenticate_federated("second")

    assert again.created is False
    assert again.user["id"] == created.user["id"]


@pytest.mark.anyio
async def test_federated_errors_propagate(issuer):
    with pytest.raises(FederatedTokenExpiredError):
        await issuer.authenticate_federated("expired-token", "startup")
    with pytest.raises(FederatedTokenInvalidError):
        await issuer.authenticate_federated("unknown-token", "startup")


@pytest.mark.anyio
async def test_federated_identity_without_email_cannot_sign_up(issuer, fake_bridge):
    fake_bridge.add("phone-only", uid="uid-phone", email=None)
    with pytest.raises(FederatedTokenInvalidError):
        await issuer.authenticate_federated("phone-only", "startup")


@pytest.mark.anyio
async def test_complete_federated_signup_uses_supplied_profile(issuer, fake_bridge):
    fake_bridge.add("fb-token", uid="uid-1", email="f@x.com", name="From Firebase")

    result = await issuer.complete_federated_signup("fb-token", "startup", name="Chosen Name")

    assert result.created is True
    assert result.user["name"] == "Chosen Name"
    assert result.user["email"] == "f@x.com"


@pytest.mark.anyio
async def test_complete_federated_signup_with_other_email_is_unverified(issuer, fake_bridge):
    fake_bridge.add("fb-token", uid="uid-1", email="me@x.com", email_verified=True)

    result = await issuer.complete_federated_signup("fb-token", "startup", email="ceo@bigco.com")

    assert result.user["email"] == "ceo@bigco.com"
    assert result.user["is_verified"] is False

    again = await issuer.authenticate_federated("fb-token")
    assert again.user["is_verified"] is False


@pytest.mark.anyio
async def test_complete_federated_signup_with_own_email_is_verified(issuer, fake_bridge):
    fake_bridge.add("fb-token", uid="uid-1", email="me@x.com", email_verified=True)

    result = await issuer.complete_federated_signup("fb-token", "startup", email="Me@X.com")
    assert result.user["is_verified"] is True


@pytest.mark.anyio
async def test_complete_federated_signup_twice_is_duplicate(issuer, fake_bridge):
    fake_bridge.add("fb-token", uid="uid-1", email="f@x.com")
    await issuer.complete_federated_signup("fb-token", "startup")
    with pytest.raises(DuplicateEmailError):
        await issuer.complete_federated_signup("fb-token", "startup")


# =============================================================================
# Refresh
# =============================================================================

@pytest.mark.anyio
async def test_refresh_issues_new_access_token(issuer, codec):
    registered = await issuer.register_local("Alice", "a@x.com", "secret1", "startup")

    refreshed = await issuer.refresh(registered.refresh_token)

    assert refreshed.refresh_token is None
    claims = codec.verify_access_token(refreshed.token)
    assert claims.subject_id == registered.user["id"]
    assert claims.identity.provider is AuthProvider.LOCAL


@pytest.mark.anyio
async def test_refresh_rejects_access_token(issuer):
    registered = await issuer.register_local("Alice", "a@x.com", "secret1", "startup")
    with pytest.raises(TokenWrongTypeError):
        await issuer.refresh(registered.token)
