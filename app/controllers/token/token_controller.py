"""
Token lifecycle: code exchange, expiry checks and refresh of stored OAuth credentials.
"""

import asyncio
import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode

from app.controllers.providers.http_client import ProviderHttpClient
from app.controllers.token.config import OAuthClientConfig
from app.exceptions import CredentialExchangeError, NotSupportedError, RefreshFailedError, TransientNetworkError
from app.models.account import Account, AccountProvider
from app.models.oauth_token import OAuthToken
from app.repos.oauth_token import OAuthTokenRepo
from app.utils.encryption import TokenCipher

DEFAULT_EXPIRES_IN = 3600


@dataclass
class TokenCredential:
    provider: AccountProvider
    access_token: str
    refresh_token: str | None
    expires_at: datetime


class TokenController:
    """Owns every OAuth credential the engine uses."""

    def __init__(
        self,
        oauth_token_repo: OAuthTokenRepo,
        http_client: ProviderHttpClient,
        client_configs: dict[AccountProvider, OAuthClientConfig],
    ) -> None:
        self._logger = logging.getLogger(__name__)
        self._oauth_token_repo = oauth_token_repo
        self._http_client = http_client
        self._client_configs = client_configs
        # account id -> refresh in flight; concurrent callers await the same task.
        self._refreshes: dict[int, asyncio.Task[str]] = {}

    def authorization_url(self, provider: AccountProvider, state: str, login_hint: str | None = None) -> str:
        """Provider consent URL the front-end redirects the user to."""
        config = self._config(provider)
        params = {
            "client_id": config.client_id,
            "redirect_uri": config.redirect_uri,
            "response_type": "code",
            "scope": config.scopes,
            "state": state,
            **config.authorize_params,
        }
        if login_hint:
            params["login_hint"] = login_hint
        return f"{config.authorize_url}?{urlencode(params)}"

    def authorization_redirect_uri(self, provider: AccountProvider) -> str:
        return self._config(provider).redirect_uri

    async def exchange_code(
        self, provider: AccountProvider, authorization_code: str, redirect_uri: str | None = None
    ) -> TokenCredential:
        """
        Exchange an authorization code for tokens. Nothing is stored; the caller persists the result.

        Raises:
            CredentialExchangeError: the provider refused the code or answered without an access token
            TransientNetworkError: timeout or 5xx from the token endpoint
        """
        config = self._config(provider)
        data = {
            "code": authorization_code,
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "redirect_uri": redirect_uri or config.redirect_uri,
            "grant_type": "authorization_code",
        }
        if config.scope_on_token_request:
            data["scope"] = config.scopes

        status, body = await self._http_client.send("POST", config.token_url, provider.value, data=data)
        if status >= 500 or status == 429:
            raise TransientNetworkError(
                f"{provider.value} token endpoint unavailable ({status})", provider=provider.value
            )
        if status >= 400 or not isinstance(body, dict) or body.get("error"):
            self._logger.warning(f"{provider.value} code exchange failed ({status}): {body}")
            raise CredentialExchangeError(
                "The authorization code was rejected. Please connect the account again.", provider=provider.value
            )
        if not body.get("access_token"):
            self._logger.warning(f"{provider.value} code exchange returned no access token: {body}")
            raise CredentialExchangeError("The provider returned no access token", provider=provider.value)

        return TokenCredential(
            provider=provider,
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token"),
            expires_at=self._expires_at(body),
        )

    async def store_credential(self, account: Account, credential: TokenCredential) -> OAuthToken:
        """Persist a freshly exchanged credential as the account's only credential."""
        return await self._oauth_token_repo.replace(
            account,
            TokenCipher.encrypt(credential.access_token),
            TokenCipher.encrypt(credential.refresh_token) if credential.refresh_token else None,
            credential.expires_at,
        )

    async def revoke_credential(self, account: Account) -> bool:
        """Forget the account's credential."""
        return await self._oauth_token_repo.delete_by_account_id(account.id)

    async def ensure_valid_token(self, account: Account) -> str:
        """
        Return a usable access token, refreshing it first when it has expired.

        Raises:
            RefreshFailedError: no credential stored or the provider rejected the refresh token
            TransientNetworkError: timeout or 5xx from the token endpoint
        """
        token = await self._get_token_or_fail(account)
        if not token.is_expired():
            return TokenCipher.decrypt(token.access_token)
        return await self._refresh_shared(account)

    async def refresh_after_rejection(self, account: Account, rejected_access_token: str) -> str:
        """Force a refresh because the provider answered 401/403 to `rejected_access_token`."""
        token = await self._get_token_or_fail(account)
        current = TokenCipher.decrypt(token.access_token)
        if current != rejected_access_token and not token.is_expired():
            # Someone else refreshed in the meantime.
            return current
        return await self._refresh_shared(account)

    async def _refresh_shared(self, account: Account) -> str:
        task = self._refreshes.get(account.id)
        if task is None:
            task = asyncio.create_task(self._refresh(account))
            self._refreshes[account.id] = task
            task.add_done_callback(lambda _, account_id=account.id: self._refreshes.pop(account_id, None))
        # Shielded so that one cancelled caller doesn't abort the refresh the others are waiting for.
        return await asyncio.shield(task)

    async def _refresh(self, account: Account) -> str:
        provider = account.provider
        token = await self._get_token_or_fail(account)
        if not token.refresh_token:
            raise RefreshFailedError(
                "No refresh token is stored for this account. Please reconnect it.",
                account=account.email,
                provider=provider.value,
            )

        config = self._config(provider)
        data = {
            "refresh_token": TokenCipher.decrypt(token.refresh_token),
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "grant_type": "refresh_token",
        }
        if config.scope_on_token_request:
            data["scope"] = config.scopes

        self._logger.info(f"Refreshing {provider.value} access token for {account.email}")
        status, body = await self._http_client.send("POST", config.token_url, provider.value, data=data)

        if status >= 500 or status == 429:
            raise TransientNetworkError(
                f"{provider.value} token endpoint unavailable ({status})",
                account=account.email,
                provider=provider.value,
            )
        if status >= 400 or not isinstance(body, dict) or body.get("error"):
            self._logger.warning(f"{provider.value} refresh rejected for {account.email} ({status}): {body}")
            raise RefreshFailedError(
                "Access to the mailbox was revoked or has expired. Please reconnect your account.",
                account=account.email,
                provider=provider.value,
            )
        if not body.get("access_token"):
            self._logger.warning(f"{provider.value} refresh for {account.email} returned no access token: {body}")
            raise TransientNetworkError(
                f"{provider.value} token endpoint returned no access token",
                account=account.email,
                provider=provider.value,
            )

        access_token: str = body["access_token"]
        new_refresh_token = body.get("refresh_token")
        await self._oauth_token_repo.replace(
            account,
            TokenCipher.encrypt(access_token),
            TokenCipher.encrypt(new_refresh_token) if new_refresh_token else None,
            self._expires_at(body),
        )
        # Kept even if the rest of the request is rolled back.
        await self._oauth_token_repo.commit()
        return access_token

    async def _get_token_or_fail(self, account: Account) -> OAuthToken:
        token = await self._oauth_token_repo.get_by_account_id(account.id)
        if token is None:
            raise RefreshFailedError(
                "No OAuth credential is stored for this account. Please reconnect it.",
                account=account.email,
                provider=account.provider.value,
            )
        return token

    def _config(self, provider: AccountProvider) -> OAuthClientConfig:
        config = self._client_configs.get(provider)
        if config is None:
            raise NotSupportedError(f"No OAuth client configured for {provider.value}")
        return config

    @staticmethod
    def _expires_at(body: dict[str, Any]) -> datetime:
        try:
            expires_in = int(body.get("expires_in") or DEFAULT_EXPIRES_IN)
        except (TypeError, ValueError):
            expires_in = DEFAULT_EXPIRES_IN
        return datetime.now(UTC) + timedelta(seconds=expires_in)
