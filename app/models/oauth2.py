from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .account import AccountProvider
from .base import Base, TimestampMixin
from .decorators.types import EnumStringType

if TYPE_CHECKING:
    from .user import User


class OAuth2RequestStatus(Enum):
    pending = "pending"
    completed = "completed"
    failed = "failed"


class OAuth2AuthorizationRequest(Base, TimestampMixin):
    """Pending consent redirect. The state value ties the provider callback back to the user."""

    __tablename__ = "oauth2_authorization_requests"

    user_id: Mapped[int] = mapped_column(sa.ForeignKey("users.id"), nullable=False, index=True)
    provider: Mapped[AccountProvider] = mapped_column(EnumStringType(AccountProvider), nullable=False)
    state: Mapped[str] = mapped_column(sa.String(255), nullable=False, unique=True)
    redirect_uri: Mapped[str] = mapped_column(sa.String(500), nullable=False)
    account_id: Mapped[int | None] = mapped_column(sa.ForeignKey("accounts.id"), nullable=True)
    status: Mapped[OAuth2RequestStatus] = mapped_column(
        EnumStringType(OAuth2RequestStatus),
        nullable=False,
        default=OAuth2RequestStatus.pending,
        server_default=OAuth2RequestStatus.pending.value,
    )
    state_used: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    expires_at: Mapped[datetime] = mapped_column(
        sa.DateTime(timezone=True), nullable=False, default=lambda: datetime.now(UTC) + timedelta(minutes=10)
    )

    user: Mapped["User"] = relationship("User")

    def is_valid(self) -> bool:
        """Check if the authorization request can still be completed."""
        return not self.state_used and datetime.now(UTC) < self.expires_at

    def __repr__(self) -> str:
        return f"<OAuth2AuthorizationRequest(provider='{self.provider.value}', status='{self.status.value}')>"
