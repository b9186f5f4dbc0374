from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol

from app.models.account import AccountProvider


@dataclass
class MessagePage:
    ids: list[str]
    next_cursor: str | None = None


@dataclass
class ProviderProfile:
    email: str
    display_name: str | None = None


@dataclass
class MessageFlags:
    is_read: bool
    is_starred: bool
    is_spam: bool
    labels: list[str] = field(default_factory=list)


@dataclass
class OutgoingMessage:
    sender: str
    to: list[str]
    subject: str
    body_text: str = ""
    body_html: str = ""
    cc: list[str] = field(default_factory=list)
    bcc: list[str] = field(default_factory=list)


@dataclass
class SendResult:
    # None when the provider does not report an id for sent mail (Graph sendMail).
    provider_message_id: str | None


class ProviderAdapter(Protocol):
    """Capabilities every mail provider offers the sync engine."""

    provider: AccountProvider

    async def list_message_ids(
        self, access_token: str, cursor: str | None, since: datetime | None = None
    ) -> MessagePage: ...

    async def fetch_message(self, access_token: str, message_id: str) -> dict[str, Any]: ...

    def map_flags(self, provider_message: dict[str, Any]) -> MessageFlags: ...

    async def get_profile(self, access_token: str) -> ProviderProfile: ...

    async def send_message(self, access_token: str, message: OutgoingMessage) -> SendResult: ...
