"""
Send controller for outgoing mail through the account's provider.
"""

import logging

from app.controllers.providers.base import OutgoingMessage, ProviderAdapter, SendResult
from app.controllers.token.token_controller import TokenController
from app.exceptions import AuthRejectedError, InvalidDataError, NotSupportedError
from app.models.account import Account, AccountProvider


class SendController:
    """Controller for sending emails from a connected account."""

    def __init__(self, token_controller: TokenController, adapters: dict[AccountProvider, ProviderAdapter]) -> None:
        self._logger = logging.getLogger(__name__)
        self._token_controller = token_controller
        self._adapters = adapters

    async def send_message(
        self,
        account: Account,
        to: list[str],
        subject: str,
        body_text: str = "",
        body_html: str = "",
        cc: list[str] | None = None,
        bcc: list[str] | None = None,
    ) -> SendResult:
        """
        Send an email from `account`.

        Outlook results carry no provider id because Graph's sendMail doesn't return one.
        """
        if not account.is_active:
            raise InvalidDataError("The account is disconnected", account=account.email)
        if not to:
            raise InvalidDataError("At least one recipient is required")

        adapter = self._adapters.get(account.provider)
        if adapter is None:
            raise NotSupportedError(f"Provider {account.provider.value} is not supported")

        message = OutgoingMessage(
            sender=account.email,
            to=to,
            cc=cc or [],
            bcc=bcc or [],
            subject=subject,
            body_text=body_text,
            body_html=body_html,
        )

        access_token = await self._token_controller.ensure_valid_token(account)
        try:
            return await adapter.send_message(access_token, message)
        except AuthRejectedError:
            self._logger.warning(f"Token of {account.email} rejected while sending; refreshing once")
            access_token = await self._token_controller.refresh_after_rejection(account, access_token)
            return await adapter.send_message(access_token, message)
