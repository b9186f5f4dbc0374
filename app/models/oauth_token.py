from datetime import UTC, datetime
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .account import AccountProvider
from .base import Base, TimestampMixin
from .decorators.types import EnumStringType

if TYPE_CHECKING:
    from .account import Account


class OAuthToken(Base, TimestampMixin):
    """OAuth credential of an account. Token strings are stored encrypted."""

    __tablename__ = "oauth_tokens"

    account_id: Mapped[int] = mapped_column(
        sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, unique=True
    )
    provider: Mapped[AccountProvider] = mapped_column(EnumStringType(AccountProvider), nullable=False)
    access_token: Mapped[str] = mapped_column(sa.Text, nullable=False, comment="Encrypted access token")
    refresh_token: Mapped[str | None] = mapped_column(sa.Text, nullable=True, comment="Encrypted refresh token")
    expires_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)

    account: Mapped["Account"] = relationship("Account", back_populates="token")

    def is_expired(self, now: datetime | None = None) -> bool:
        return self.expires_at < (now or datetime.now(UTC))

    def __repr__(self) -> str:
        return f"<OAuthToken(account='{self.account_id}', expires_at='{self.expires_at}')>"
