"""
Shared aiohttp client for provider token endpoints and mail APIs.
"""

import asyncio
import logging
from typing import Any

import aiohttp

from app.exceptions import AuthRejectedError, ProviderApiError, TransientNetworkError

# 429 is a rate limit, not a rejected request.
_TRANSIENT_STATUSES = {408, 429}


class ProviderHttpClient:
    """Issues provider HTTP calls with a bounded timeout and maps failures to the engine's error taxonomy."""

    def __init__(self, timeout: float, session: aiohttp.ClientSession | None = None) -> None:
        self._logger = logging.getLogger(__name__)
        self._timeout = timeout
        self._http_session = session
        self._session_lock = asyncio.Lock()

    async def init_session(self) -> None:
        """Initialize the HTTP session."""
        async with self._session_lock:
            if self._http_session is None:
                self._http_session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=self._timeout))

    async def close_session(self) -> None:
        """Close the HTTP session."""
        if self._http_session:
            await self._http_session.close()
            self._http_session = None

    async def send(
        self,
        method: str,
        url: str,
        provider: str,
        headers: dict[str, str] | None = None,
        params: dict[str, Any] | None = None,
        data: dict[str, Any] | None = None,
        json: Any = None,
    ) -> tuple[int, Any]:
        """
        Perform one request and return (status, body) without judging the status.

        The body is decoded JSON when the provider answers with JSON, the raw text otherwise, and None
        when empty. Timeouts and connection failures raise TransientNetworkError.
        """
        await self.init_session()
        assert self._http_session is not None

        try:
            async with self._http_session.request(
                method,
                url,
                headers=headers,
                params=params,
                data=data,
                json=json,
                timeout=aiohttp.ClientTimeout(total=self._timeout),
            ) as response:
                if response.content_type == "application/json":
                    try:
                        body = await response.json()
                    except (aiohttp.ContentTypeError, ValueError):
                        self._logger.warning(f"{provider} sent invalid JSON with {response.status}: {method} {url}")
                        body = await response.text() or None
                else:
                    body = await response.text() or None
                return response.status, body
        except asyncio.TimeoutError as e:
            self._logger.warning(f"{provider} call timed out after {self._timeout}s: {method} {url}")
            raise TransientNetworkError(f"{provider} did not respond within {self._timeout}s", provider=provider) from e
        except aiohttp.ClientError as e:
            self._logger.warning(f"{provider} call failed: {method} {url}: {e}")
            raise TransientNetworkError(f"Could not reach {provider}", provider=provider) from e

    async def call_api(
        self,
        method: str,
        url: str,
        access_token: str,
        provider: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Call a mail API with a bearer token and return the decoded body of a 2xx response."""
        status, body = await self.send(
            method, url, provider, headers={"Authorization": f"Bearer {access_token}"}, params=params, json=json
        )
        if 200 <= status < 300:
            return body

        provider_message = self._extract_error_message(body)
        # Raw bodies stay in the logs; callers only get the short provider message.
        self._logger.warning(f"{provider} API {method} {url} answered {status}: {body}")

        if status in (401, 403):
            raise AuthRejectedError(
                f"{provider} rejected the access token ({status})", status, provider_message, provider=provider
            )
        if status >= 500 or status in _TRANSIENT_STATUSES:
            raise TransientNetworkError(f"{provider} API temporarily unavailable ({status})", provider=provider)
        raise ProviderApiError(f"{provider} API error ({status})", status, provider_message, provider=provider)

    @staticmethod
    def _extract_error_message(body: Any) -> str:
        """Pull the human readable message out of Google / Graph style error bodies."""
        if isinstance(body, dict):
            error = body.get("error")
            if isinstance(error, dict):
                return str(error.get("message") or error.get("code") or "")
            if error:
                return str(body.get("error_description") or error)
            return ""
        return str(body or "")[:500]
