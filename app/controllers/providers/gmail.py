"""
Gmail REST API adapter.
"""

import base64
import logging
from datetime import datetime
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate
from typing import Any

from app.controllers.providers.base import MessageFlags, MessagePage, OutgoingMessage, ProviderProfile, SendResult
from app.controllers.providers.http_client import ProviderHttpClient
from app.controllers.sync.message_utils import MessageUtils
from app.exceptions import ProviderApiError
from app.models.account import AccountProvider

GMAIL_API_URL = "https://gmail.googleapis.com/gmail/v1/users/me"
MAX_PAGE_SIZE = 100


class GmailAdapter:
    """Lists, fetches and sends mail through the Gmail API."""

    provider = AccountProvider.gmail

    def __init__(self, http_client: ProviderHttpClient, page_size: int = MAX_PAGE_SIZE) -> None:
        self._logger = logging.getLogger(__name__)
        self._http_client = http_client
        self._page_size = min(page_size, MAX_PAGE_SIZE)

    async def list_message_ids(
        self, access_token: str, cursor: str | None, since: datetime | None = None
    ) -> MessagePage:
        """One page of message ids, newest first. `since` narrows the listing to mail received after it."""
        params: dict[str, Any] = {"maxResults": self._page_size}
        if cursor:
            params["pageToken"] = cursor
        if since is not None:
            params["q"] = f"after:{int(since.timestamp())}"

        body = await self._http_client.call_api(
            "GET", f"{GMAIL_API_URL}/messages", access_token, self.provider.value, params=params
        )
        body = body or {}
        ids = [message["id"] for message in body.get("messages") or [] if message.get("id")]
        return MessagePage(ids=ids, next_cursor=body.get("nextPageToken") or None)

    async def fetch_message(self, access_token: str, message_id: str) -> dict[str, Any]:
        body = await self._http_client.call_api(
            "GET",
            f"{GMAIL_API_URL}/messages/{message_id}",
            access_token,
            self.provider.value,
            params={"format": "full"},
        )
        return body if isinstance(body, dict) else {}

    def map_flags(self, provider_message: dict[str, Any]) -> MessageFlags:
        return MessageUtils.map_gmail_flags(provider_message)

    async def get_profile(self, access_token: str) -> ProviderProfile:
        body = await self._http_client.call_api("GET", f"{GMAIL_API_URL}/profile", access_token, self.provider.value)
        email = (body or {}).get("emailAddress")
        if not email:
            raise ProviderApiError("Gmail profile has no email address", 200, provider=self.provider.value)
        return ProviderProfile(email=email)

    async def send_message(self, access_token: str, message: OutgoingMessage) -> SendResult:
        raw = base64.urlsafe_b64encode(self._build_mime(message).as_bytes()).decode().rstrip("=")
        body = await self._http_client.call_api(
            "POST", f"{GMAIL_API_URL}/messages/send", access_token, self.provider.value, json={"raw": raw}
        )
        message_id = (body or {}).get("id")
        self._logger.info(f"Sent Gmail message {message_id} from {message.sender}")
        return SendResult(provider_message_id=message_id)

    @staticmethod
    def _build_mime(message: OutgoingMessage) -> MIMEMultipart:
        mime = MIMEMultipart("alternative")
        mime["From"] = message.sender
        mime["To"] = ", ".join(message.to)
        if message.cc:
            mime["Cc"] = ", ".join(message.cc)
        # Gmail reads Bcc from the raw message and strips it before delivery.
        if message.bcc:
            mime["Bcc"] = ", ".join(message.bcc)
        mime["Subject"] = message.subject
        mime["Date"] = formatdate(localtime=True)
        mime.attach(MIMEText(message.body_text or "", "plain", "utf-8"))
        if message.body_html:
            mime.attach(MIMEText(message.body_html, "html", "utf-8"))
        return mime
