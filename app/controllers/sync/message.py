from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass
class NormalizedMessage:
    """Provider independent shape of one email, ready to be stored."""

    message_id: str
    thread_id: str | None = None
    subject: str = ""
    from_name: str = ""
    from_address: str = ""
    to_addresses: list[str] = field(default_factory=list)
    cc_addresses: list[str] = field(default_factory=list)
    date: datetime | None = None
    body_text: str = ""
    body_html: str = ""
    snippet: str = ""
    has_attachments: bool = False
    is_read: bool = False
    is_starred: bool = False
    is_spam: bool = False
    labels: list[str] = field(default_factory=list)

    def to_record(self, user_id: int, account_id: int) -> dict[str, Any]:
        """Column values for the messages table."""
        return {"user_id": user_id, "account_id": account_id, **asdict(self)}


@dataclass
class SyncResult:
    messages_synced: int = 0
    messages_skipped: int = 0
    skipped_ids: list[str] = field(default_factory=list)
