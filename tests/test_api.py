"""Tests for the HTTP surface, with repositories and controllers swapped for mocks."""

from datetime import UTC, datetime
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from conftest import make_account
from dependency_injector import providers
from fastapi.testclient import TestClient

from app.container import get_wire_container
from app.controllers.providers.base import SendResult
from app.create_app import create_app
from app.exceptions import SyncInProgressError
from app.models import SyncJob, SyncJobStatus, SyncJobType, User

AUTH = {"Authorization": "Bearer key-1"}


@pytest.fixture
def account():
    return make_account()


@pytest.fixture
def user_repo():
    repo = Mock()

    async def get_by_api_key(api_key):
        return User(id=7, name="Jane", api_key=api_key) if api_key == "key-1" else None

    repo.get_by_api_key = AsyncMock(side_effect=get_by_api_key)
    return repo


@pytest.fixture
def api_account_repo(account):
    repo = Mock()

    async def get_by_user_and_uuid(user_id, uuid):
        return account if user_id == account.user_id and uuid == account.uuid else None

    repo.get_by_user_and_uuid = AsyncMock(side_effect=get_by_user_and_uuid)
    repo.list_by_user = AsyncMock(return_value=[account])
    return repo


@pytest.fixture
def sync_controller():
    return Mock(run_sync=AsyncMock())


@pytest.fixture
def send_controller():
    return Mock(send_message=AsyncMock(return_value=SendResult(provider_message_id=None)))


@pytest.fixture
def connection_controller():
    return Mock(initiate_connection=AsyncMock(return_value="https://accounts.google.com/o/oauth2/v2/auth?state=s"))


@pytest.fixture
def client(user_repo, api_account_repo, sync_controller, send_controller, connection_controller):
    container = get_wire_container()
    container.repos.user.override(providers.Object(user_repo))
    container.repos.account.override(providers.Object(api_account_repo))
    container.controllers.sync_controller.override(providers.Object(sync_controller))
    container.controllers.send_controller.override(providers.Object(send_controller))
    container.controllers.connection_controller.override(providers.Object(connection_controller))

    yield TestClient(create_app(container))

    container.unwire()
    container.reset_override()


def finished_job(account, status=SyncJobStatus.completed, **overrides):
    values = {
        "id": 1,
        "uuid": uuid4(),
        "account_id": account.id,
        "job_type": SyncJobType.full,
        "status": status,
        "started_at": datetime(2024, 1, 1, tzinfo=UTC),
        "completed_at": datetime(2024, 1, 1, 0, 1, tzinfo=UTC),
        "messages_synced": 9,
        "messages_skipped": 1,
        "error_message": None,
    }
    values.update(overrides)
    return SyncJob(**values)


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_unknown_api_key_is_rejected(client):
    response = client.get("/v1/accounts/", headers={"Authorization": "Bearer nope"})
    assert response.status_code == 401


def test_list_accounts(client, account):
    response = client.get("/v1/accounts/", headers=AUTH)

    assert response.status_code == 200
    [data] = response.json()["data"]
    assert data["id"] == str(account.uuid)
    assert data["provider"] == "gmail"
    assert data["sync_status"] == "pending"


def test_get_unknown_account(client):
    response = client.get(f"/v1/accounts/{uuid4()}", headers=AUTH)

    assert response.status_code == 404
    assert response.json() == {"error": "entity_not_found", "error_description": "Account not found"}


def test_get_account_with_invalid_id(client):
    response = client.get("/v1/accounts/not-a-uuid", headers=AUTH)
    assert response.status_code == 400


def test_trigger_sync(client, account, sync_controller):
    sync_controller.run_sync.return_value = finished_job(account)

    response = client.post(f"/v1/accounts/{account.uuid}/sync", headers=AUTH, json={"job_type": "full"})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["status"] == "completed"
    assert data["messages_synced"] == 9
    assert data["messages_skipped"] == 1
    assert data["account_id"] == str(account.uuid)
    sync_controller.run_sync.assert_awaited_once_with(account, SyncJobType.full)


def test_trigger_sync_defaults_to_incremental(client, account, sync_controller):
    sync_controller.run_sync.return_value = finished_job(account, job_type=SyncJobType.incremental)

    response = client.post(f"/v1/accounts/{account.uuid}/sync", headers=AUTH)

    assert response.status_code == 200
    sync_controller.run_sync.assert_awaited_once_with(account, SyncJobType.incremental)


def test_trigger_sync_while_running(client, account, sync_controller):
    sync_controller.run_sync.side_effect = SyncInProgressError("A sync is already running for this account")

    response = client.post(f"/v1/accounts/{account.uuid}/sync", headers=AUTH, json={})

    assert response.status_code == 409
    assert response.json()["error"] == "sync_in_progress"


def test_send_message(client, account, send_controller):
    response = client.post(
        f"/v1/accounts/{account.uuid}/messages/send",
        headers=AUTH,
        json={"to": ["bob@example.com"], "subject": "Hi", "body_text": "Hello"},
    )

    assert response.status_code == 200
    assert response.json()["data"] == {"provider_message_id": None}
    assert send_controller.send_message.await_args.kwargs["to"] == ["bob@example.com"]


def test_send_message_requires_a_body(client, account, send_controller):
    response = client.post(
        f"/v1/accounts/{account.uuid}/messages/send", headers=AUTH, json={"to": ["bob@example.com"]}
    )

    assert response.status_code == 422
    send_controller.send_message.assert_not_called()


def test_connect_returns_consent_url(client, connection_controller):
    response = client.get("/v1/connect/gmail/auth", headers=AUTH, params={"login_hint": "jane@example.com"})

    assert response.status_code == 200
    assert response.json()["authorization_url"].startswith("https://accounts.google.com/")
    user, provider, login_hint, account_uuid = connection_controller.initiate_connection.await_args.args
    assert (user.id, provider.value, login_hint, account_uuid) == (7, "gmail", "jane@example.com", None)


def test_connect_unknown_provider(client):
    assert client.get("/v1/connect/yahoo/auth", headers=AUTH).status_code == 422
