from datetime import UTC, datetime
from typing import Sequence
from uuid import UUID

from app.models.account import Account
from app.models.sync_job import SyncJob, SyncJobStatus, SyncJobType
from app.repos.base import BaseRepo


class SyncJobRepo(BaseRepo[SyncJob]):
    """Repository for SyncJob model operations."""

    def __init__(self) -> None:
        super().__init__(SyncJob)

    async def start(self, account: Account, job_type: SyncJobType, started_at: datetime) -> SyncJob:
        """Create a job in `running` state."""
        job = SyncJob(
            account_id=account.id,
            job_type=job_type,
            status=SyncJobStatus.running,
            started_at=started_at,
            messages_synced=0,
            messages_skipped=0,
        )
        await self.add(job)
        return job

    async def finish(
        self,
        job: SyncJob,
        status: SyncJobStatus,
        messages_synced: int,
        messages_skipped: int,
        error_message: str | None = None,
    ) -> SyncJob:
        """Move a running job into a terminal state."""
        if job.is_terminal:
            raise ValueError(f"Sync job {job.uuid} is already {job.status.value}")
        return await self.update(
            job,
            {
                "status": status,
                "completed_at": datetime.now(UTC),
                "messages_synced": messages_synced,
                "messages_skipped": messages_skipped,
                "error_message": error_message,
            },
        )

    async def list_by_account(self, account_id: int, limit: int = 20) -> Sequence[SyncJob]:
        """List the latest jobs of an account."""
        query = self.base_stmt.where(SyncJob.account_id == account_id).order_by(SyncJob.id.desc()).limit(limit)
        result = await self.execute(query)
        return result.all()

    async def get_by_account_and_uuid(self, account_id: int, uuid: UUID) -> SyncJob | None:
        """Get a job of an account by uuid."""
        result = await self.execute(self.base_stmt.where(SyncJob.account_id == account_id, SyncJob.uuid == uuid))
        return result.one_or_none()
