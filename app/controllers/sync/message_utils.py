import base64
import binascii
import html
import logging
import re
from dataclasses import fields
from datetime import UTC, datetime
from email.message import Message as PythonEmailMessage
from email.utils import parsedate_to_datetime
from typing import Any, Callable

from app.controllers.providers.base import MessageFlags
from app.controllers.sync.message import NormalizedMessage
from app.exceptions import MalformedMessageError
from app.models.account import AccountProvider

logger = logging.getLogger(__name__)

SNIPPET_LENGTH = 200
MAX_ID_LENGTH = 255

_ANGLE_ADDRESS = re.compile(r"<(.+?)>")
_HTML_TAG = re.compile(r"<[^>]*>")
_WHITESPACE = re.compile(r"\s+")


class MessageUtils:
    """Converts Gmail and Microsoft Graph message payloads into NormalizedMessage. No I/O."""

    @staticmethod
    def normalize(
        provider_message: dict[str, Any], provider: AccountProvider, fallback_date: datetime | None = None
    ) -> NormalizedMessage:
        """Normalize one provider payload. Raises MalformedMessageError when the payload is unusable."""
        if not isinstance(provider_message, dict) or not provider_message.get("id"):
            raise MalformedMessageError("Message payload has no id", provider=provider.value)
        message_id = provider_message["id"]
        if not isinstance(message_id, str) or len(message_id) > MAX_ID_LENGTH:
            raise MalformedMessageError("Message id is not a usable identifier", provider=provider.value)

        normalizers: dict[AccountProvider, Callable[[dict[str, Any], datetime | None], NormalizedMessage]] = {
            AccountProvider.gmail: MessageUtils._normalize_gmail,
            AccountProvider.outlook: MessageUtils._normalize_outlook,
        }
        try:
            normalized = normalizers[provider](provider_message, fallback_date)
        except (AttributeError, TypeError) as e:
            # A field of the wrong JSON type somewhere in the payload
            raise MalformedMessageError(
                f"Message {message_id} has an unexpected structure: {e}", provider=provider.value
            ) from e
        return MessageUtils._scrub(normalized)

    @staticmethod
    def _scrub(message: NormalizedMessage) -> NormalizedMessage:
        """Drop NUL characters, which PostgreSQL text columns reject."""
        for column in fields(message):
            value = getattr(message, column.name)
            if isinstance(value, str):
                setattr(message, column.name, value.replace("\x00", ""))
            elif isinstance(value, list):
                setattr(message, column.name, [str(item).replace("\x00", "") for item in value])
        return message

    # Gmail

    @staticmethod
    def _normalize_gmail(message: dict[str, Any], fallback_date: datetime | None) -> NormalizedMessage:
        payload = message.get("payload")
        if not isinstance(payload, dict) or not isinstance(payload.get("headers"), list):
            raise MalformedMessageError(f"Gmail message {message['id']} has no header list", provider="gmail")

        headers = payload["headers"]
        from_name, from_address = MessageUtils.parse_address(MessageUtils.get_header(headers, "From"))
        body_text, body_html = MessageUtils.extract_bodies(payload)
        flags = MessageUtils.map_gmail_flags(message)

        return NormalizedMessage(
            message_id=message["id"],
            thread_id=message.get("threadId"),
            subject=MessageUtils.get_header(headers, "Subject"),
            from_name=from_name,
            from_address=from_address,
            to_addresses=MessageUtils.split_addresses(MessageUtils.get_header(headers, "To")),
            cc_addresses=MessageUtils.split_addresses(MessageUtils.get_header(headers, "Cc")),
            date=MessageUtils._gmail_date(message, headers) or fallback_date,
            body_text=body_text,
            body_html=body_html,
            snippet=MessageUtils.derive_snippet(body_text, body_html, message.get("snippet")),
            has_attachments=MessageUtils._has_attachment_part(payload),
            is_read=flags.is_read,
            is_starred=flags.is_starred,
            is_spam=flags.is_spam,
            labels=flags.labels,
        )

    @staticmethod
    def map_gmail_flags(message: dict[str, Any]) -> MessageFlags:
        label_ids = message.get("labelIds") or []
        # Labels are a set; keep first-seen order so the stored array is stable.
        labels = list(dict.fromkeys(label_ids))
        return MessageFlags(
            is_read="UNREAD" not in labels,
            is_starred="STARRED" in labels,
            is_spam="SPAM" in labels,
            labels=labels,
        )

    @staticmethod
    def get_header(headers: list[dict[str, Any]], name: str) -> str:
        """Case-insensitive header lookup. Absent headers come back as an empty string."""
        wanted = name.lower()
        for header in headers:
            if not isinstance(header, dict):
                raise MalformedMessageError(f"Header entry is not an object: {header!r:.80}", provider="gmail")
            if str(header.get("name", "")).lower() == wanted:
                return str(header.get("value") or "")
        return ""

    @staticmethod
    def extract_bodies(payload: dict[str, Any]) -> tuple[str, str]:
        """
        Walk the MIME part tree in pre-order and return (text/plain, text/html).

        The first part of each type that carries data wins.
        """
        found: dict[str, str] = {}
        stack = [payload]
        while stack:
            part = MessageUtils._check_part(stack.pop())
            mime_type = part.get("mimeType")
            data = (part.get("body") or {}).get("data")
            if mime_type in ("text/plain", "text/html") and mime_type not in found and data:
                found[mime_type] = MessageUtils.decode_base64url(data, MessageUtils._part_charset(part))
            # Reversed so that the first child is visited next.
            stack.extend(reversed(MessageUtils._child_parts(part)))
        return found.get("text/plain", ""), found.get("text/html", "")

    @staticmethod
    def _check_part(part: Any) -> dict[str, Any]:
        if not isinstance(part, dict):
            raise MalformedMessageError(f"MIME part is not an object: {part!r:.80}", provider="gmail")
        return part

    @staticmethod
    def _child_parts(part: dict[str, Any]) -> list[Any]:
        children = part.get("parts") or []
        if not isinstance(children, list):
            raise MalformedMessageError("MIME parts is not a list", provider="gmail")
        return children

    @staticmethod
    def decode_base64url(data: str | None, charset: str = "utf-8") -> str:
        """Decode a Gmail body. Missing data is an empty body, corrupt data a malformed message."""
        if not data:
            return ""
        padded = data + "=" * (-len(data) % 4)
        try:
            raw = base64.urlsafe_b64decode(padded)
        except (binascii.Error, ValueError) as e:
            raise MalformedMessageError("Body is not valid base64url", provider="gmail") from e
        try:
            return raw.decode(charset)
        except (LookupError, UnicodeDecodeError):
            return raw.decode("utf-8", errors="replace")

    @staticmethod
    def _part_charset(part: dict[str, Any]) -> str:
        content_type = MessageUtils.get_header(part.get("headers") or [], "Content-Type")
        if not content_type:
            return "utf-8"
        holder = PythonEmailMessage()
        holder["Content-Type"] = content_type
        return holder.get_content_charset() or "utf-8"

    @staticmethod
    def _has_attachment_part(payload: dict[str, Any]) -> bool:
        stack = [payload]
        while stack:
            part = MessageUtils._check_part(stack.pop())
            if part.get("filename"):
                return True
            stack.extend(MessageUtils._child_parts(part))
        return False

    @staticmethod
    def _gmail_date(message: dict[str, Any], headers: list[dict[str, Any]]) -> datetime | None:
        date_header = MessageUtils.get_header(headers, "Date")
        if date_header:
            try:
                parsed = parsedate_to_datetime(date_header)
                return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
            except (TypeError, ValueError, IndexError):
                logger.debug(f"Unparseable Date header on Gmail message {message.get('id')}: {date_header}")
        internal_date = message.get("internalDate")
        if internal_date:
            try:
                return datetime.fromtimestamp(int(internal_date) / 1000, tz=UTC)
            except (TypeError, ValueError, OverflowError):
                return None
        return None

    # Microsoft Graph

    @staticmethod
    def _normalize_outlook(message: dict[str, Any], fallback_date: datetime | None) -> NormalizedMessage:
        sender = (message.get("from") or message.get("sender") or {}).get("emailAddress") or {}
        body = message.get("body") or {}
        content = body.get("content") or ""
        is_html = str(body.get("contentType", "")).lower() == "html"
        body_text = "" if is_html else content
        body_html = content if is_html else ""
        flags = MessageUtils.map_outlook_flags(message)

        return NormalizedMessage(
            message_id=message["id"],
            thread_id=message.get("conversationId"),
            subject=message.get("subject") or "",
            from_name=(sender.get("name") or "").strip(),
            from_address=(sender.get("address") or "").strip(),
            to_addresses=MessageUtils._graph_recipients(message.get("toRecipients")),
            cc_addresses=MessageUtils._graph_recipients(message.get("ccRecipients")),
            date=MessageUtils._graph_date(message.get("receivedDateTime")) or fallback_date,
            body_text=body_text,
            body_html=body_html,
            snippet=MessageUtils.derive_snippet(body_text, body_html, message.get("bodyPreview")),
            has_attachments=bool(message.get("hasAttachments")),
            is_read=flags.is_read,
            is_starred=flags.is_starred,
            is_spam=flags.is_spam,
            labels=flags.labels,
        )

    @staticmethod
    def map_outlook_flags(message: dict[str, Any]) -> MessageFlags:
        flag_status = ((message.get("flag") or {}).get("flagStatus") or "").lower()
        return MessageFlags(
            is_read=bool(message.get("isRead")),
            is_starred=flag_status == "flagged",
            is_spam=False,
            labels=list(dict.fromkeys(message.get("categories") or [])),
        )

    @staticmethod
    def _graph_recipients(recipients: list[dict[str, Any]] | None) -> list[str]:
        addresses = []
        for recipient in recipients or []:
            email_address = recipient.get("emailAddress") or {}
            address = (email_address.get("address") or "").strip()
            name = (email_address.get("name") or "").strip()
            if not address:
                continue
            addresses.append(f"{name} <{address}>" if name and name != address else address)
        return addresses

    @staticmethod
    def _graph_date(value: str | None) -> datetime | None:
        if not value:
            return None
        try:
            parsed = datetime.fromisoformat(value)
        except ValueError:
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)

    # Shared

    @staticmethod
    def parse_address(header_value: str) -> tuple[str, str]:
        """
        Split a From header into (display name, address).

        `Name <addr>` gives ("Name", "addr"); a bare address gives ("", whole value).
        """
        value = header_value.strip()
        match = _ANGLE_ADDRESS.search(value)
        if not match:
            return "", value
        address = match.group(1).strip()
        name = _ANGLE_ADDRESS.sub("", value, count=1).strip()
        if len(name) >= 2 and name[0] == name[-1] == '"':
            name = name[1:-1].strip()
        return name, address

    @staticmethod
    def split_addresses(header_value: str) -> list[str]:
        """Split a To/Cc header on commas that are outside quotes and angle brackets."""
        addresses: list[str] = []
        current: list[str] = []
        in_quotes = False
        in_angle = False
        for char in header_value:
            if char == '"' and not in_angle:
                in_quotes = not in_quotes
            elif char == "<" and not in_quotes:
                in_angle = True
            elif char == ">" and not in_quotes:
                in_angle = False
            elif char == "," and not in_quotes and not in_angle:
                addresses.append("".join(current).strip())
                current = []
                continue
            current.append(char)
        addresses.append("".join(current).strip())
        return [address for address in addresses if address]

    @staticmethod
    def strip_tags(value: str) -> str:
        text = html.unescape(_HTML_TAG.sub("", value))
        return _WHITESPACE.sub(" ", text).strip()

    @staticmethod
    def derive_snippet(body_text: str, body_html: str, provider_snippet: str | None = None) -> str:
        """Provider snippet if any, else the start of the text body, else the tag-stripped HTML body."""
        if provider_snippet:
            return html.unescape(provider_snippet)[:SNIPPET_LENGTH]
        if body_text:
            return body_text[:SNIPPET_LENGTH]
        return MessageUtils.strip_tags(body_html)[:SNIPPET_LENGTH]
