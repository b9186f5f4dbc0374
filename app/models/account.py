from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy.schema import UniqueConstraint

from .base import Base, TimestampMixin, WithUUID
from .decorators.types import EnumStringType

if TYPE_CHECKING:
    from .oauth_token import OAuthToken
    from .user import User


class AccountProvider(Enum):
    gmail = "gmail"
    outlook = "outlook"


class SyncStatus(Enum):
    pending = "pending"
    syncing = "syncing"
    success = "success"
    error = "error"


class Account(Base, WithUUID, TimestampMixin):
    """A connected mailbox."""

    __tablename__ = "accounts"

    user_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id"), nullable=False, index=True)
    provider: Mapped[AccountProvider] = mapped_column(EnumStringType(AccountProvider), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), nullable=False)
    display_name: Mapped[str | None] = mapped_column(sa.String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True, server_default=sa.true())
    sync_status: Mapped[SyncStatus] = mapped_column(
        EnumStringType(SyncStatus), nullable=False, default=SyncStatus.pending, server_default=SyncStatus.pending.value
    )
    last_sync_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    error_message: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    user: Mapped["User"] = relationship("User")
    token: Mapped["OAuthToken | None"] = relationship(
        "OAuthToken", back_populates="account", uselist=False, cascade="all, delete-orphan"
    )

    __table_args__ = (UniqueConstraint("user_id", "provider", "email", name="uq_account_user_provider_email"),)

    def __repr__(self) -> str:
        return (
            f"<Account(email='{self.email}', provider='{self.provider.value}', "
            f"sync_status='{self.sync_status.value}')>"
        )
