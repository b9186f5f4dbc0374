"""Tests for provider HTTP error mapping."""

import asyncio
import json
from typing import Any

import aiohttp
import pytest

from app.controllers.providers.http_client import ProviderHttpClient
from app.exceptions import AuthRejectedError, ProviderApiError, TransientNetworkError


class FakeResponse:
    def __init__(self, status: int, body: Any, content_type: str = "application/json") -> None:
        self.status = status
        self.content_type = content_type
        self._body = body

    async def json(self) -> Any:
        if isinstance(self._body, str) and self.content_type == "application/json":
            return json.loads(self._body)
        return self._body

    async def text(self) -> str:
        return self._body or ""


class FakeRequest:
    def __init__(self, outcome: FakeResponse | Exception) -> None:
        self._outcome = outcome

    async def __aenter__(self) -> FakeResponse:
        if isinstance(self._outcome, Exception):
            raise self._outcome
        return self._outcome

    async def __aexit__(self, *args: Any) -> None:
        return None


class FakeSession:
    def __init__(self, outcome: FakeResponse | Exception) -> None:
        self.outcome = outcome
        self.calls: list[dict[str, Any]] = []

    def request(self, method: str, url: str, **kwargs: Any) -> FakeRequest:
        self.calls.append({"method": method, "url": url, **kwargs})
        return FakeRequest(self.outcome)


def client_for(outcome: FakeResponse | Exception) -> tuple[ProviderHttpClient, FakeSession]:
    session = FakeSession(outcome)
    return ProviderHttpClient(timeout=5, session=session), session  # type: ignore[arg-type]


async def test_call_api_returns_body_and_sends_bearer_token():
    client, session = client_for(FakeResponse(200, {"messages": []}))

    body = await client.call_api("GET", "https://api.test/messages", "tok", "gmail", params={"maxResults": 10})

    assert body == {"messages": []}
    assert session.calls[0]["headers"] == {"Authorization": "Bearer tok"}
    assert session.calls[0]["params"] == {"maxResults": 10}


async def test_non_json_body_is_returned_as_text():
    client, _ = client_for(FakeResponse(202, "", content_type="text/plain"))
    assert await client.call_api("POST", "https://api.test/send", "tok", "outlook") is None


@pytest.mark.parametrize("status", [401, 403])
async def test_auth_rejection(status):
    error = {"error": {"code": "InvalidAuthenticationToken", "message": "expired"}}
    client, _ = client_for(FakeResponse(status, error))

    with pytest.raises(AuthRejectedError) as exc_info:
        await client.call_api("GET", "https://api.test/me", "tok", "outlook")

    assert exc_info.value.provider_status == status
    assert exc_info.value.provider_message == "expired"
    assert exc_info.value.extra["provider"] == "outlook"


@pytest.mark.parametrize("status", [500, 503, 429, 408])
async def test_transient_statuses(status):
    client, _ = client_for(FakeResponse(status, {"error": "busy"}))
    with pytest.raises(TransientNetworkError) as exc_info:
        await client.call_api("GET", "https://api.test/messages", "tok", "gmail")
    assert exc_info.value.retryable is True


async def test_other_client_errors_are_provider_api_errors():
    client, _ = client_for(FakeResponse(404, {"error": {"code": 404, "message": "Requested entity was not found."}}))

    with pytest.raises(ProviderApiError) as exc_info:
        await client.call_api("GET", "https://api.test/messages/x", "tok", "gmail")

    assert not isinstance(exc_info.value, AuthRejectedError)
    assert exc_info.value.provider_status == 404
    assert exc_info.value.provider_message == "Requested entity was not found."


@pytest.mark.parametrize("error", [asyncio.TimeoutError(), aiohttp.ClientConnectionError("refused")])
async def test_network_failures_are_transient(error):
    client, _ = client_for(error)
    with pytest.raises(TransientNetworkError):
        await client.send("GET", "https://api.test/messages", "gmail")


async def test_send_returns_status_without_judging_it():
    client, _ = client_for(FakeResponse(400, {"error": "invalid_grant"}))
    assert await client.send("POST", "https://token.test", "gmail", data={"a": "b"}) == (400, {"error": "invalid_grant"})


async def test_close_session_forgets_session():
    closed = []

    class ClosableSession(FakeSession):
        async def close(self) -> None:
            closed.append(True)

    client = ProviderHttpClient(timeout=5, session=ClosableSession(FakeResponse(200, {})))  # type: ignore[arg-type]
    await client.close_session()
    await client.close_session()

    assert closed == [True]


@pytest.mark.parametrize("status, error_type", [(502, TransientNetworkError), (400, ProviderApiError)])
async def test_invalid_json_error_body_is_mapped(status, error_type):
    client, _ = client_for(FakeResponse(status, "<html>Bad Gateway</html>"))

    with pytest.raises(error_type):
        await client.call_api("GET", "https://gmail.googleapis.com/x", "token", "gmail")


async def test_invalid_json_body_falls_back_to_text():
    client, _ = client_for(FakeResponse(200, "{not json"))

    status, body = await client.send("GET", "https://gmail.googleapis.com/x", "gmail")

    assert status == 200
    assert body == "{not json"
