"""
Connection controller: turns a provider consent callback into a persisted Account and credential.
"""

import logging
import secrets
from uuid import UUID

from app.controllers.providers.base import ProviderAdapter
from app.controllers.token.token_controller import TokenController
from app.exceptions import CredentialExchangeError, EntityNotFoundError, NotSupportedError, SyncInProgressError
from app.models.account import Account, AccountProvider, SyncStatus
from app.models.oauth2 import OAuth2AuthorizationRequest, OAuth2RequestStatus
from app.models.user import User
from app.repos.account import AccountRepo
from app.repos.oauth2 import OAuth2AuthorizationRequestRepo

logger = logging.getLogger(__name__)


class ConnectionController:
    """Controller for connecting and disconnecting mailboxes."""

    def __init__(
        self,
        account_repo: AccountRepo,
        oauth2_authorization_request_repo: OAuth2AuthorizationRequestRepo,
        token_controller: TokenController,
        adapters: dict[AccountProvider, ProviderAdapter],
    ) -> None:
        self._account_repo = account_repo
        self._oauth2_authorization_request_repo = oauth2_authorization_request_repo
        self._token_controller = token_controller
        self._adapters = adapters

    async def initiate_connection(
        self,
        user: User,
        provider: AccountProvider,
        login_hint: str | None = None,
        account_uuid: UUID | None = None,
    ) -> str:
        """Record a pending authorization request and return the provider consent URL."""
        account_id = None
        if account_uuid is not None:
            account = await self._account_repo.get_by_user_and_uuid(user.id, account_uuid)
            if account is None:
                raise EntityNotFoundError("Account not found")
            account_id = account.id
            login_hint = login_hint or account.email

        state = self._generate_state()
        authorization_url = self._token_controller.authorization_url(provider, state, login_hint)
        await self._oauth2_authorization_request_repo.add(
            OAuth2AuthorizationRequest(
                user_id=user.id,
                provider=provider,
                state=state,
                redirect_uri=self._token_controller.authorization_redirect_uri(provider),
                account_id=account_id,
            )
        )
        return authorization_url

    async def complete_connection(
        self, user: User, provider: AccountProvider, authorization_code: str, state: str
    ) -> Account:
        """
        Exchange the code from the consent callback and persist the Account with its credential.

        Raises:
            CredentialExchangeError: unknown, expired or reused state, or the provider refused the code
            SyncInProgressError: the mailbox being reconnected is syncing right now
        """
        request = await self._oauth2_authorization_request_repo.get_by_state(state)
        if request is None or request.provider != provider or request.user_id != user.id:
            raise CredentialExchangeError("Unknown authorization request", provider=provider.value)
        if not request.is_valid():
            raise CredentialExchangeError("Authorization request expired or already used", provider=provider.value)

        requested = None
        if request.account_id is not None:
            requested = await self._account_repo.get(request.account_id)
            if requested is not None:
                self._ensure_not_syncing(requested)

        try:
            credential = await self._token_controller.exchange_code(provider, authorization_code, request.redirect_uri)
            profile = await self._adapter(provider).get_profile(credential.access_token)
        except Exception:
            await self._burn(request)
            raise

        account = await self._account_repo.get_by_mailbox(request.user_id, provider, profile.email)
        # Only reuse the row the user asked to reconnect when it is the same mailbox.
        if account is None and requested is not None and requested.email.lower() == profile.email.lower():
            account = requested

        if account is None:
            account = Account(
                user_id=request.user_id,
                provider=provider,
                email=profile.email,
                display_name=profile.display_name,
                is_active=True,
                sync_status=SyncStatus.pending,
            )
            await self._account_repo.add(account)
        else:
            try:
                self._ensure_not_syncing(account)
            except SyncInProgressError:
                await self._burn(request)
                raise
            await self._account_repo.update(
                account,
                {
                    "display_name": profile.display_name or account.display_name,
                    "is_active": True,
                    "sync_status": SyncStatus.pending,
                    "error_message": None,
                },
            )

        await self._token_controller.store_credential(account, credential)
        await self._oauth2_authorization_request_repo.mark_as_used(request, OAuth2RequestStatus.completed)
        await self._account_repo.commit()
        logger.info(f"Connected {provider.value} account {account.email}")
        return account

    async def disconnect_account(self, account: Account) -> None:
        """Delete the account's credential and deactivate it. Stored messages are kept."""
        self._ensure_not_syncing(account, "Wait for the running sync to finish before disconnecting")
        await self._token_controller.revoke_credential(account)
        await self._account_repo.update(account, {"is_active": False, "sync_status": SyncStatus.pending})
        logger.info(f"Disconnected {account.provider.value} account {account.email}")

    async def _burn(self, request: OAuth2AuthorizationRequest) -> None:
        await self._oauth2_authorization_request_repo.mark_as_used(request, OAuth2RequestStatus.failed)
        await self._oauth2_authorization_request_repo.commit()

    @staticmethod
    def _ensure_not_syncing(
        account: Account, message: str = "Wait for the running sync to finish before reconnecting"
    ) -> None:
        if account.sync_status == SyncStatus.syncing:
            raise SyncInProgressError(message, account=account.email)

    def _adapter(self, provider: AccountProvider) -> ProviderAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise NotSupportedError(f"Provider {provider.value} is not supported")
        return adapter

    @staticmethod
    def _generate_state() -> str:
        return secrets.token_urlsafe(32)
