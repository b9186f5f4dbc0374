"""Tests for connecting and disconnecting mailboxes."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse
from uuid import uuid4

import pytest
from conftest import make_account, make_token

from app.controllers.connect.connection_controller import ConnectionController
from app.exceptions import CredentialExchangeError, EntityNotFoundError, SyncInProgressError
from app.models import Account, AccountProvider, SyncStatus, User
from app.models.oauth2 import OAuth2AuthorizationRequest, OAuth2RequestStatus
from app.utils.encryption import TokenCipher

EXCHANGE_RESPONSE = (200, {"access_token": "access-new", "refresh_token": "refresh-new", "expires_in": 3600})


@pytest.fixture
def user():
    return User(id=7, name="Jane", api_key="key-1")


@pytest.fixture
def connection_controller(account_repo, oauth2_request_repo, token_controller, fake_adapter):
    return ConnectionController(
        account_repo=account_repo,
        oauth2_authorization_request_repo=oauth2_request_repo,
        token_controller=token_controller,
        adapters={AccountProvider.gmail: fake_adapter},
    )


def pending_request(**overrides):
    values = {
        "id": 11,
        "user_id": 7,
        "provider": AccountProvider.gmail,
        "state": "state-1",
        "redirect_uri": "https://app.test/callback/gmail",
        "account_id": None,
        "status": OAuth2RequestStatus.pending,
        "state_used": False,
        "expires_at": datetime.now(UTC) + timedelta(minutes=10),
    }
    values.update(overrides)
    return OAuth2AuthorizationRequest(**values)


def added(session, model_type):
    return [call.args[0] for call in session.add.call_args_list if isinstance(call.args[0], model_type)]


async def test_initiate_connection_records_state(connection_controller, user, session):
    url = await connection_controller.initiate_connection(user, AccountProvider.gmail, login_hint="jane@example.com")

    [request] = added(session, OAuth2AuthorizationRequest)
    query = parse_qs(urlparse(url).query)
    assert query["state"] == [request.state]
    assert len(request.state) >= 32
    assert request.user_id == 7
    assert request.provider == AccountProvider.gmail
    assert request.redirect_uri == "https://app.test/callback/gmail"
    assert request.account_id is None


async def test_initiate_reconnect_prefills_mailbox(connection_controller, user, account_repo, session):
    account = make_account(id=5)
    account_repo.get_by_user_and_uuid.return_value = account

    url = await connection_controller.initiate_connection(user, AccountProvider.gmail, account_uuid=account.uuid)

    [request] = added(session, OAuth2AuthorizationRequest)
    assert request.account_id == 5
    assert parse_qs(urlparse(url).query)["login_hint"] == ["jane@example.com"]


async def test_initiate_reconnect_of_unknown_account(connection_controller, user):
    with pytest.raises(EntityNotFoundError):
        await connection_controller.initiate_connection(user, AccountProvider.gmail, account_uuid=uuid4())


async def test_complete_connection_creates_account(
    connection_controller, user, oauth2_request_repo, http_client, fake_adapter, token_store, session
):
    request = pending_request()
    oauth2_request_repo.get_by_state.return_value = request
    http_client.send.return_value = EXCHANGE_RESPONSE

    account = await connection_controller.complete_connection(user, AccountProvider.gmail, "code-1", "state-1")

    assert added(session, Account) == [account]
    assert account.user_id == 7
    assert account.email == fake_adapter.profile.email
    assert account.display_name == "Jane Doe"
    assert account.is_active is True
    assert account.sync_status == SyncStatus.pending
    token = token_store[account.id]
    assert TokenCipher.decrypt(token.access_token) == "access-new"
    assert TokenCipher.decrypt(token.refresh_token) == "refresh-new"
    assert request.state_used is True
    assert request.status == OAuth2RequestStatus.completed
    assert http_client.send.call_args.kwargs["data"]["redirect_uri"] == "https://app.test/callback/gmail"
    session.commit.assert_awaited()


async def test_complete_connection_updates_existing_mailbox(
    connection_controller, user, oauth2_request_repo, account_repo, http_client, token_store, session
):
    existing = make_account(id=9, is_active=False, sync_status=SyncStatus.error, error_message="revoked")
    token_store[existing.id] = make_token(existing, access_token="stale", refresh_token="old-refresh")
    account_repo.get_by_mailbox.return_value = existing
    oauth2_request_repo.get_by_state.return_value = pending_request()
    http_client.send.return_value = EXCHANGE_RESPONSE

    account = await connection_controller.complete_connection(user, AccountProvider.gmail, "code-1", "state-1")

    assert account is existing
    assert added(session, Account) == []
    assert account.is_active is True
    assert account.sync_status == SyncStatus.pending
    assert account.error_message is None
    assert TokenCipher.decrypt(token_store[9].access_token) == "access-new"
    assert TokenCipher.decrypt(token_store[9].refresh_token) == "refresh-new"


async def test_complete_connection_reuses_requested_account(
    connection_controller, user, oauth2_request_repo, http_client, session
):
    reconnected = make_account(id=9, email="JANE@example.com", is_active=False)
    session.get.return_value = reconnected
    oauth2_request_repo.get_by_state.return_value = pending_request(account_id=9)
    http_client.send.return_value = EXCHANGE_RESPONSE

    account = await connection_controller.complete_connection(user, AccountProvider.gmail, "code-1", "state-1")

    assert account is reconnected
    assert account.is_active is True


async def test_reconnect_with_other_mailbox_creates_new_account(
    connection_controller, user, oauth2_request_repo, http_client, session
):
    session.get.return_value = make_account(id=9, email="someone-else@example.com")
    oauth2_request_repo.get_by_state.return_value = pending_request(account_id=9)
    http_client.send.return_value = EXCHANGE_RESPONSE

    account = await connection_controller.complete_connection(user, AccountProvider.gmail, "code-1", "state-1")

    assert account.id != 9
    assert added(session, Account) == [account]


@pytest.mark.parametrize(
    "request_overrides",
    [
        None,
        {"provider": AccountProvider.outlook},
        {"user_id": 8},
        {"state_used": True},
        {"expires_at": datetime.now(UTC) - timedelta(seconds=1)},
    ],
)
async def test_complete_connection_rejects_bad_state(
    connection_controller, user, oauth2_request_repo, http_client, request_overrides
):
    oauth2_request_repo.get_by_state.return_value = (
        pending_request(**request_overrides) if request_overrides is not None else None
    )

    with pytest.raises(CredentialExchangeError):
        await connection_controller.complete_connection(user, AccountProvider.gmail, "code-1", "state-1")
    http_client.send.assert_not_called()


async def test_failed_exchange_burns_the_state(connection_controller, user, oauth2_request_repo, http_client, session):
    request = pending_request()
    oauth2_request_repo.get_by_state.return_value = request
    http_client.send.return_value = (400, {"error": "invalid_grant"})

    with pytest.raises(CredentialExchangeError):
        await connection_controller.complete_connection(user, AccountProvider.gmail, "code-1", "state-1")

    assert request.state_used is True
    assert request.status == OAuth2RequestStatus.failed
    assert added(session, Account) == []
    session.commit.assert_awaited()


async def test_disconnect_revokes_credential(connection_controller, token_store):
    account = make_account(sync_status=SyncStatus.success)
    token_store[account.id] = make_token(account)

    await connection_controller.disconnect_account(account)

    assert account.id not in token_store
    assert account.is_active is False


async def test_disconnect_during_sync_is_rejected(connection_controller, token_store):
    account = make_account(sync_status=SyncStatus.syncing)
    token_store[account.id] = make_token(account)

    with pytest.raises(SyncInProgressError):
        await connection_controller.disconnect_account(account)
    assert account.id in token_store


async def test_profile_failure_marks_request_failed(
    connection_controller, user, oauth2_request_repo, http_client, fake_adapter
):
    request = pending_request()
    oauth2_request_repo.get_by_state.return_value = request
    http_client.send.return_value = EXCHANGE_RESPONSE
    fake_adapter.get_profile = AsyncMock(side_effect=CredentialExchangeError("no profile"))

    with pytest.raises(CredentialExchangeError):
        await connection_controller.complete_connection(user, AccountProvider.gmail, "code-1", "state-1")

    assert request.status == OAuth2RequestStatus.failed


async def test_reconnect_of_syncing_mailbox_is_rejected(
    connection_controller, user, oauth2_request_repo, account_repo, http_client, token_store, session
):
    syncing = make_account(id=9, sync_status=SyncStatus.syncing)
    token_store[syncing.id] = make_token(syncing, access_token="in-use", refresh_token="old-refresh")
    account_repo.get_by_mailbox.return_value = syncing
    request = pending_request()
    oauth2_request_repo.get_by_state.return_value = request
    http_client.send.return_value = EXCHANGE_RESPONSE

    with pytest.raises(SyncInProgressError):
        await connection_controller.complete_connection(user, AccountProvider.gmail, "code-1", "state-1")

    assert syncing.sync_status == SyncStatus.syncing
    assert TokenCipher.decrypt(token_store[9].access_token) == "in-use"
    assert request.status == OAuth2RequestStatus.failed
    session.commit.assert_awaited()


async def test_reconnect_of_syncing_requested_account_skips_exchange(
    connection_controller, user, oauth2_request_repo, http_client, session
):
    session.get.return_value = make_account(id=9, sync_status=SyncStatus.syncing)
    oauth2_request_repo.get_by_state.return_value = pending_request(account_id=9)

    with pytest.raises(SyncInProgressError):
        await connection_controller.complete_connection(user, AccountProvider.gmail, "code-1", "state-1")
    http_client.send.assert_not_called()
