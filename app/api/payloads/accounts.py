"""
Pydantic models for account and sync job endpoints.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from app.models.account import Account, AccountProvider, SyncStatus
from app.models.sync_job import SyncJob, SyncJobStatus, SyncJobType


class AccountData(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    provider: AccountProvider
    email: str
    display_name: str | None = None
    is_active: bool
    sync_status: SyncStatus
    last_sync_at: datetime | None = None
    error_message: str | None = None

    @classmethod
    def from_account(cls, account: Account) -> "AccountData":
        return cls(
            id=str(account.uuid),
            provider=account.provider,
            email=account.email,
            display_name=account.display_name,
            is_active=account.is_active,
            sync_status=account.sync_status,
            last_sync_at=account.last_sync_at,
            error_message=account.error_message,
        )


class AccountResponse(BaseModel):
    request_id: str
    data: AccountData


class AccountListResponse(BaseModel):
    request_id: str
    data: list[AccountData]


class DeleteAccountResponse(BaseModel):
    request_id: str = Field(..., description="Unique request identifier")
    success: bool = Field(True, description="Whether the account was disconnected")


class TriggerSyncRequest(BaseModel):
    job_type: SyncJobType = Field(SyncJobType.incremental, description="full or incremental")


class SyncJobData(BaseModel):
    id: str
    account_id: str
    job_type: SyncJobType
    status: SyncJobStatus
    started_at: datetime
    completed_at: datetime | None = None
    messages_synced: int
    messages_skipped: int
    error_message: str | None = None

    @classmethod
    def from_job(cls, job: SyncJob, account: Account) -> "SyncJobData":
        return cls(
            id=str(job.uuid),
            account_id=str(account.uuid),
            job_type=job.job_type,
            status=job.status,
            started_at=job.started_at,
            completed_at=job.completed_at,
            messages_synced=job.messages_synced,
            messages_skipped=job.messages_skipped,
            error_message=job.error_message,
        )


class SyncJobResponse(BaseModel):
    request_id: str
    data: SyncJobData


class SyncJobListResponse(BaseModel):
    request_id: str
    data: list[SyncJobData]
