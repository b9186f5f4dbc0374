"""
Accounts API router - connected mailboxes, their sync jobs and sync triggers.
"""

import uuid

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path, Query

from app.api.middlewares.authentication import get_current_user
from app.api.payloads import (
    AccountData,
    AccountListResponse,
    AccountResponse,
    APIError,
    DeleteAccountResponse,
    SyncJobData,
    SyncJobListResponse,
    SyncJobResponse,
    TriggerSyncRequest,
)
from app.api.utils.errors import get_account_or_fail, new_request_id
from app.container import ApplicationContainer
from app.controllers.connect.connection_controller import ConnectionController
from app.controllers.sync.sync_controller import SyncController
from app.exceptions import EntityNotFoundError, InvalidDataError
from app.models.user import User
from app.repos.account import AccountRepo
from app.repos.sync_job import SyncJobRepo

from .messages import router as messages_router

router = APIRouter()

router.include_router(messages_router, prefix="/{account_id}/messages", tags=["messages"])

ACCOUNT_ID = Path(..., examples=["a3ec500d-126b-4532-a632-7808721b3732"])


@router.get("/", response_model=AccountListResponse, summary="List connected accounts")
@inject
async def list_accounts(
    user: User = Depends(get_current_user),
    account_repo: AccountRepo = Depends(Provide[ApplicationContainer.repos.account]),
) -> AccountListResponse:
    accounts = await account_repo.list_by_user(user.id)
    return AccountListResponse(request_id=new_request_id(), data=[AccountData.from_account(a) for a in accounts])


@router.get(
    "/{account_id}",
    response_model=AccountResponse,
    responses={404: {"model": APIError, "description": "Account not found"}},
    summary="Get an account and its sync status",
)
async def get_account(account_id: str = ACCOUNT_ID, user: User = Depends(get_current_user)) -> AccountResponse:
    account = await get_account_or_fail(user.id, account_id)
    return AccountResponse(request_id=new_request_id(), data=AccountData.from_account(account))


@router.delete(
    "/{account_id}",
    response_model=DeleteAccountResponse,
    responses={
        404: {"model": APIError, "description": "Account not found"},
        409: {"model": APIError, "description": "A sync is running"},
    },
    summary="Disconnect an account",
    description="Deletes the stored OAuth credential and deactivates the account",
)
@inject
async def delete_account(
    account_id: str = ACCOUNT_ID,
    user: User = Depends(get_current_user),
    connection_controller: ConnectionController = Depends(Provide[ApplicationContainer.controllers.connection_controller]),
) -> DeleteAccountResponse:
    account = await get_account_or_fail(user.id, account_id)
    await connection_controller.disconnect_account(account)
    return DeleteAccountResponse(request_id=new_request_id(), success=True)


@router.post(
    "/{account_id}/sync",
    response_model=SyncJobResponse,
    responses={
        400: {"model": APIError, "description": "Account disconnected"},
        404: {"model": APIError, "description": "Account not found"},
        409: {"model": APIError, "description": "A sync is already running for this account"},
    },
    summary="Run a sync",
    description="Runs a full or incremental sync and returns the finished job",
)
@inject
async def trigger_sync(
    body: TriggerSyncRequest | None = None,
    account_id: str = ACCOUNT_ID,
    user: User = Depends(get_current_user),
    sync_controller: SyncController = Depends(Provide[ApplicationContainer.controllers.sync_controller]),
) -> SyncJobResponse:
    account = await get_account_or_fail(user.id, account_id)
    job = await sync_controller.run_sync(account, (body or TriggerSyncRequest()).job_type)
    return SyncJobResponse(request_id=new_request_id(), data=SyncJobData.from_job(job, account))


@router.get("/{account_id}/sync-jobs", response_model=SyncJobListResponse, summary="List recent sync jobs")
@inject
async def list_sync_jobs(
    account_id: str = ACCOUNT_ID,
    limit: int = Query(20, ge=1, le=100),
    user: User = Depends(get_current_user),
    sync_job_repo: SyncJobRepo = Depends(Provide[ApplicationContainer.repos.sync_job]),
) -> SyncJobListResponse:
    account = await get_account_or_fail(user.id, account_id)
    jobs = await sync_job_repo.list_by_account(account.id, limit)
    return SyncJobListResponse(request_id=new_request_id(), data=[SyncJobData.from_job(j, account) for j in jobs])


@router.get(
    "/{account_id}/sync-jobs/{job_id}",
    response_model=SyncJobResponse,
    responses={404: {"model": APIError, "description": "Sync job not found"}},
    summary="Get a sync job",
)
@inject
async def get_sync_job(
    account_id: str = ACCOUNT_ID,
    job_id: str = Path(...),
    user: User = Depends(get_current_user),
    sync_job_repo: SyncJobRepo = Depends(Provide[ApplicationContainer.repos.sync_job]),
) -> SyncJobResponse:
    account = await get_account_or_fail(user.id, account_id)
    try:
        job_uuid = uuid.UUID(job_id)
    except ValueError as e:
        raise InvalidDataError("Invalid sync job id") from e

    job = await sync_job_repo.get_by_account_and_uuid(account.id, job_uuid)
    if job is None:
        raise EntityNotFoundError("Sync job not found")
    return SyncJobResponse(request_id=new_request_id(), data=SyncJobData.from_job(job, account))
