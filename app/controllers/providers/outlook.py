"""
Microsoft Graph mail adapter.
"""

import logging
from datetime import UTC, datetime
from typing import Any

from app.controllers.providers.base import MessageFlags, MessagePage, OutgoingMessage, ProviderProfile, SendResult
from app.controllers.providers.http_client import ProviderHttpClient
from app.controllers.sync.message_utils import MessageUtils
from app.exceptions import InvalidDataError, ProviderApiError
from app.models.account import AccountProvider

GRAPH_API_URL = "https://graph.microsoft.com/v1.0"
PAGE_SIZE = 50
MESSAGE_FIELDS = (
    "id,conversationId,subject,from,sender,toRecipients,ccRecipients,receivedDateTime,body,bodyPreview,"
    "hasAttachments,isRead,flag,categories"
)


class OutlookAdapter:
    """Lists, fetches and sends mail through Microsoft Graph."""

    provider = AccountProvider.outlook

    def __init__(self, http_client: ProviderHttpClient) -> None:
        self._logger = logging.getLogger(__name__)
        self._http_client = http_client

    async def list_message_ids(
        self, access_token: str, cursor: str | None, since: datetime | None = None
    ) -> MessagePage:
        """
        One page of message ids, newest first.

        The cursor is the `@odata.nextLink` of the previous page; it already carries the filter and skip
        token so it is requested as is.
        """
        if cursor:
            if not cursor.startswith(f"{GRAPH_API_URL}/"):
                raise InvalidDataError("Outlook cursor does not point at Microsoft Graph")
            body = await self._http_client.call_api("GET", cursor, access_token, self.provider.value)
        else:
            params: dict[str, Any] = {"$select": "id", "$top": PAGE_SIZE, "$orderby": "receivedDateTime desc"}
            if since is not None:
                params["$filter"] = f"receivedDateTime ge {self._format_since(since)}"
            body = await self._http_client.call_api(
                "GET", f"{GRAPH_API_URL}/me/messages", access_token, self.provider.value, params=params
            )

        body = body or {}
        ids = [message["id"] for message in body.get("value") or [] if message.get("id")]
        return MessagePage(ids=ids, next_cursor=body.get("@odata.nextLink") or None)

    async def fetch_message(self, access_token: str, message_id: str) -> dict[str, Any]:
        body = await self._http_client.call_api(
            "GET",
            f"{GRAPH_API_URL}/me/messages/{message_id}",
            access_token,
            self.provider.value,
            params={"$select": MESSAGE_FIELDS},
        )
        return body if isinstance(body, dict) else {}

    def map_flags(self, provider_message: dict[str, Any]) -> MessageFlags:
        return MessageUtils.map_outlook_flags(provider_message)

    async def get_profile(self, access_token: str) -> ProviderProfile:
        body = await self._http_client.call_api("GET", f"{GRAPH_API_URL}/me", access_token, self.provider.value)
        body = body or {}
        email = body.get("mail") or body.get("userPrincipalName")
        if not email:
            raise ProviderApiError("Microsoft Graph profile has no email address", 200, provider=self.provider.value)
        return ProviderProfile(email=email, display_name=body.get("displayName"))

    async def send_message(self, access_token: str, message: OutgoingMessage) -> SendResult:
        """Send through `me/sendMail`. Graph answers 202 without an id, so the result is id-less."""
        payload = {
            "message": {
                "subject": message.subject,
                "body": {
                    "contentType": "HTML" if message.body_html else "Text",
                    "content": message.body_html or message.body_text,
                },
                "toRecipients": self._recipients(message.to),
                "ccRecipients": self._recipients(message.cc),
                "bccRecipients": self._recipients(message.bcc),
            },
            "saveToSentItems": True,
        }
        await self._http_client.call_api(
            "POST", f"{GRAPH_API_URL}/me/sendMail", access_token, self.provider.value, json=payload
        )
        self._logger.info(f"Sent Outlook message from {message.sender}")
        return SendResult(provider_message_id=None)

    @staticmethod
    def _recipients(addresses: list[str]) -> list[dict[str, Any]]:
        recipients = []
        for value in addresses:
            name, address = MessageUtils.parse_address(value)
            email_address: dict[str, str] = {"address": address}
            if name:
                email_address["name"] = name
            recipients.append({"emailAddress": email_address})
        return recipients

    @staticmethod
    def _format_since(since: datetime) -> str:
        if since.tzinfo is None:
            since = since.replace(tzinfo=UTC)
        return since.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
