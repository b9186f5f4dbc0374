from datetime import datetime

import sqlalchemy as sa
from sqlalchemy import UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin

# Columns a later sync is allowed to overwrite on an already stored message.
MUTABLE_MESSAGE_COLUMNS = ("is_read", "is_starred", "is_spam", "labels")


class Message(Base, TimestampMixin):
    """Normalized email. Identity is (user_id, message_id)."""

    __tablename__ = "messages"

    user_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id"), nullable=False)
    account_id: Mapped[int] = mapped_column(
        sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True
    )
    message_id: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    thread_id: Mapped[str | None] = mapped_column(sa.Text, nullable=True)
    subject: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    from_name: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    from_address: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    to_addresses: Mapped[list[str]] = mapped_column(sa.ARRAY(sa.Text), nullable=False, default=list)
    cc_addresses: Mapped[list[str]] = mapped_column(sa.ARRAY(sa.Text), nullable=False, default=list)
    date: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True, index=True)
    body_text: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    body_html: Mapped[str] = mapped_column(sa.Text, nullable=False, default="")
    snippet: Mapped[str] = mapped_column(sa.String(200), nullable=False, default="")
    has_attachments: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    is_read: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    is_starred: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    is_spam: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    labels: Mapped[list[str]] = mapped_column(sa.ARRAY(sa.Text), nullable=False, default=list)

    __table_args__ = (UniqueConstraint("user_id", "message_id", name="uq_message_user_message_id"),)

    def __repr__(self) -> str:
        return f"<Message(account='{self.account_id}', message_id='{self.message_id}')>"
