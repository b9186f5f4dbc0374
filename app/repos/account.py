from typing import Sequence
from uuid import UUID

import sqlalchemy as sa
from sqlalchemy.orm import selectinload

from app.models.account import Account, AccountProvider, SyncStatus
from app.repos.base import BaseRepo


class AccountRepo(BaseRepo[Account]):
    """Repository for Account model operations."""

    def __init__(self) -> None:
        super().__init__(Account)

    async def get_by_user_and_uuid(self, user_id: int, uuid: UUID) -> Account | None:
        """Get account by owner and uuid."""
        query = self.base_stmt.where(Account.user_id == user_id, Account.uuid == uuid)
        result = await self.execute(query)
        return result.one_or_none()

    async def get_by_uuid(self, uuid: UUID) -> Account | None:
        """Get account by uuid regardless of owner."""
        result = await self.execute(self.base_stmt.where(Account.uuid == uuid))
        return result.one_or_none()

    async def get_by_mailbox(self, user_id: int, provider: AccountProvider, email: str) -> Account | None:
        """Get the account a user already has for this provider mailbox."""
        query = self.base_stmt.where(
            Account.user_id == user_id, Account.provider == provider, sa.func.lower(Account.email) == email.lower()
        )
        result = await self.execute(query)
        return result.one_or_none()

    async def list_by_user(self, user_id: int) -> Sequence[Account]:
        """List all accounts of a user, oldest first."""
        result = await self.execute(self.base_stmt.where(Account.user_id == user_id).order_by(Account.id))
        return result.all()

    async def get_all_active(self) -> Sequence[Account]:
        """Get all active accounts."""
        query = self.base_stmt.where(Account.is_active.is_(True)).options(selectinload(Account.user))
        result = await self.execute(query.order_by(Account.id))
        return result.all()

    async def try_mark_syncing(self, account: Account) -> bool:
        """
        Atomically move the account into `syncing`.

        Returns False when another run already holds the account. The conditional UPDATE is the
        per-account mutual exclusion region, so it works across processes as well.
        """
        stmt = (
            sa.update(Account)
            .where(Account.id == account.id, Account.sync_status != SyncStatus.syncing)
            .values(sync_status=SyncStatus.syncing)
            .returning(Account.id)
        )
        result = await self._db.session.execute(stmt)
        acquired = result.scalar_one_or_none() is not None
        if acquired:
            account.sync_status = SyncStatus.syncing
        return acquired
