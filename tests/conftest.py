import itertools
import os

os.environ["MAILSYNC_ENV"] = "test"

from datetime import UTC, datetime, timedelta  # noqa: E402
from types import SimpleNamespace  # noqa: E402
from typing import Any  # noqa: E402
from unittest.mock import AsyncMock, MagicMock, Mock  # noqa: E402
from uuid import uuid4  # noqa: E402

import pytest  # noqa: E402

from app.controllers.providers.base import MessagePage, ProviderProfile, SendResult  # noqa: E402
from app.controllers.providers.http_client import ProviderHttpClient  # noqa: E402
from app.controllers.token.config import build_oauth_client_configs  # noqa: E402
from app.controllers.token.token_controller import TokenController  # noqa: E402
from app.models import Account, AccountProvider, OAuthToken, SyncStatus  # noqa: E402
from app.models.message import MUTABLE_MESSAGE_COLUMNS  # noqa: E402
from app.repos.account import AccountRepo  # noqa: E402
from app.repos.message import MessageRepo  # noqa: E402
from app.repos.oauth2 import OAuth2AuthorizationRequestRepo  # noqa: E402
from app.repos.oauth_token import OAuthTokenRepo  # noqa: E402
from app.repos.sync_job import SyncJobRepo  # noqa: E402
from app.utils.encryption import TokenCipher  # noqa: E402
from settings import settings  # noqa: E402


def make_account(provider: AccountProvider = AccountProvider.gmail, **overrides: Any) -> Account:
    values: dict[str, Any] = {
        "id": 1,
        "uuid": uuid4(),
        "user_id": 7,
        "provider": provider,
        "email": "jane@example.com",
        "display_name": "Jane Doe",
        "is_active": True,
        "sync_status": SyncStatus.pending,
        "last_sync_at": None,
        "error_message": None,
    }
    values.update(overrides)
    return Account(**values)


def make_token(
    account: Account,
    access_token: str = "access-1",
    refresh_token: str | None = "refresh-1",
    expires_in: int = 3600,
) -> OAuthToken:
    return OAuthToken(
        id=1,
        account_id=account.id,
        provider=account.provider,
        access_token=TokenCipher.encrypt(access_token),
        refresh_token=TokenCipher.encrypt(refresh_token) if refresh_token else None,
        expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
    )


@pytest.fixture
def session() -> MagicMock:
    """Stand-in for the fastapi_async_sqlalchemy session; writes are recorded, nothing is persisted."""
    fake = MagicMock()
    ids = itertools.count(100)

    def assign_id(model: Any) -> None:
        if getattr(model, "id", None) is None:
            model.id = next(ids)

    fake.add = Mock(side_effect=assign_id)
    for name in ("flush", "commit", "rollback", "refresh", "delete", "execute", "get"):
        setattr(fake, name, AsyncMock())
    return fake


def bind_session(repo: Any, session: MagicMock) -> Any:
    repo._db = SimpleNamespace(session=session)
    return repo


@pytest.fixture
def token_store() -> dict[int, OAuthToken]:
    return {}


@pytest.fixture
def oauth_token_repo(session: MagicMock, token_store: dict[int, OAuthToken]) -> OAuthTokenRepo:
    """OAuthTokenRepo whose lookups read `token_store`; replace() runs the real update logic."""
    repo = bind_session(OAuthTokenRepo(), session)

    async def get_by_account_id(account_id: int) -> OAuthToken | None:
        return token_store.get(account_id)

    assign_id = session.add.side_effect

    def add(model: Any) -> None:
        assign_id(model)
        if isinstance(model, OAuthToken):
            token_store[model.account_id] = model

    async def delete(token: OAuthToken) -> None:
        token_store.pop(token.account_id, None)

    repo.get_by_account_id = get_by_account_id
    session.add.side_effect = add
    session.delete.side_effect = delete
    return repo


@pytest.fixture
def account_repo(session: MagicMock) -> AccountRepo:
    """AccountRepo whose syncing lock is evaluated against the in-memory account."""
    repo = bind_session(AccountRepo(), session)

    async def try_mark_syncing(account: Account) -> bool:
        if account.sync_status == SyncStatus.syncing:
            return False
        account.sync_status = SyncStatus.syncing
        return True

    repo.try_mark_syncing = AsyncMock(side_effect=try_mark_syncing)
    repo.get_all_active = AsyncMock(return_value=[])
    repo.get_by_mailbox = AsyncMock(return_value=None)
    repo.get_by_user_and_uuid = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def sync_job_repo(session: MagicMock) -> SyncJobRepo:
    return bind_session(SyncJobRepo(), session)


@pytest.fixture
def message_store() -> dict[tuple[int, str], dict[str, Any]]:
    return {}


@pytest.fixture
def message_repo(session: MagicMock, message_store: dict[tuple[int, str], dict[str, Any]]) -> MessageRepo:
    """MessageRepo that applies upserts to `message_store` the way the ON CONFLICT clause does."""
    repo = bind_session(MessageRepo(), session)

    async def upsert(values: dict[str, Any]) -> None:
        key = (values["user_id"], values["message_id"])
        if key in message_store:
            message_store[key].update({column: values[column] for column in MUTABLE_MESSAGE_COLUMNS})
        else:
            message_store[key] = dict(values)

    repo.upsert = AsyncMock(side_effect=upsert)
    return repo


@pytest.fixture
def oauth2_request_repo(session: MagicMock) -> OAuth2AuthorizationRequestRepo:
    repo = bind_session(OAuth2AuthorizationRequestRepo(), session)
    repo.get_by_state = AsyncMock(return_value=None)
    return repo


@pytest.fixture
def http_client() -> ProviderHttpClient:
    client = ProviderHttpClient(timeout=5, session=Mock())
    client.send = AsyncMock()
    return client


@pytest.fixture
def client_configs() -> dict:
    return build_oauth_client_configs(settings.gmail, settings.outlook)


@pytest.fixture
def token_controller(
    oauth_token_repo: OAuthTokenRepo, http_client: ProviderHttpClient, client_configs: dict
) -> TokenController:
    return TokenController(oauth_token_repo=oauth_token_repo, http_client=http_client, client_configs=client_configs)


class FakeAdapter:
    """Scriptable provider adapter. `pages` maps a cursor to the page listed for it."""

    def __init__(self, provider: AccountProvider = AccountProvider.gmail) -> None:
        self.provider = provider
        self.pages: dict[str | None, MessagePage] = {None: MessagePage(ids=[])}
        self.messages: dict[str, Any] = {}
        self.list_calls: list[tuple[str, str | None, datetime | None]] = []
        self.fetch_calls: list[tuple[str, str]] = []
        self.sent: list[tuple[str, Any]] = []
        self.profile = ProviderProfile(email="jane@example.com", display_name="Jane Doe")

    async def list_message_ids(
        self, access_token: str, cursor: str | None, since: datetime | None = None
    ) -> MessagePage:
        self.list_calls.append((access_token, cursor, since))
        page = self.pages[cursor]
        if isinstance(page, BaseException):
            raise page
        return page

    async def fetch_message(self, access_token: str, message_id: str) -> dict[str, Any]:
        self.fetch_calls.append((access_token, message_id))
        message = self.messages[message_id]
        if isinstance(message, BaseException):
            raise message
        return message

    def map_flags(self, provider_message: dict[str, Any]) -> Any:
        raise NotImplementedError

    async def get_profile(self, access_token: str) -> ProviderProfile:
        return self.profile

    async def send_message(self, access_token: str, message: Any) -> SendResult:
        self.sent.append((access_token, message))
        return SendResult(provider_message_id="sent-1")


@pytest.fixture
def fake_adapter() -> FakeAdapter:
    return FakeAdapter()


def gmail_message(message_id: str, subject: str = "Hello", labels: list[str] | None = None) -> dict[str, Any]:
    """Minimal Gmail `format=full` payload."""
    return {
        "id": message_id,
        "threadId": f"thread-{message_id}",
        "labelIds": labels if labels is not None else ["INBOX", "UNREAD"],
        "snippet": f"Snippet of {message_id}",
        "internalDate": "1700000000000",
        "payload": {
            "mimeType": "text/plain",
            "headers": [
                {"name": "From", "value": "Bob <bob@example.com>"},
                {"name": "To", "value": "jane@example.com"},
                {"name": "Subject", "value": subject},
                {"name": "Date", "value": "Tue, 14 Nov 2023 22:13:20 +0000"},
            ],
            "body": {"data": "SGVsbG8gd29ybGQ"},
        },
    }
