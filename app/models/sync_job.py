from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, TimestampMixin, WithUUID
from .decorators.types import EnumStringType

if TYPE_CHECKING:
    from .account import Account


class SyncJobType(Enum):
    full = "full"
    incremental = "incremental"


class SyncJobStatus(Enum):
    running = "running"
    completed = "completed"
    failed = "failed"


class SyncJob(Base, WithUUID, TimestampMixin):
    """One sync attempt. Terminal once it leaves `running`."""

    __tablename__ = "sync_jobs"

    account_id: Mapped[int] = mapped_column(sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False, index=True)
    job_type: Mapped[SyncJobType] = mapped_column(EnumStringType(SyncJobType), nullable=False)
    status: Mapped[SyncJobStatus] = mapped_column(
        EnumStringType(SyncJobStatus), nullable=False, default=SyncJobStatus.running
    )
    started_at: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False)
    completed_at: Mapped[datetime | None] = mapped_column(sa.DateTime(timezone=True), nullable=True)
    messages_synced: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default="0")
    messages_skipped: Mapped[int] = mapped_column(sa.Integer, nullable=False, default=0, server_default="0")
    error_message: Mapped[str | None] = mapped_column(sa.Text, nullable=True)

    account: Mapped["Account"] = relationship("Account")

    @property
    def is_terminal(self) -> bool:
        return self.status != SyncJobStatus.running

    def __repr__(self) -> str:
        return f"<SyncJob(account='{self.account_id}', type='{self.job_type.value}', status='{self.status.value}')>"
