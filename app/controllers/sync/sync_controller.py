"""
Sync orchestrator: drives one sync run of an account from token check to final job/account status.
"""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

from app.controllers.providers.base import MessagePage, ProviderAdapter
from app.controllers.sync.message import SyncResult
from app.controllers.sync.message_utils import MessageUtils
from app.controllers.token.token_controller import TokenController
from app.exceptions import (
    AuthRejectedError,
    BaseError,
    InvalidDataError,
    MalformedMessageError,
    NotSupportedError,
    SyncInProgressError,
)
from app.models.account import Account, AccountProvider, SyncStatus
from app.models.sync_job import SyncJob, SyncJobStatus, SyncJobType
from app.repos.account import AccountRepo
from app.repos.message import MessageRepo
from app.repos.sync_job import SyncJobRepo

CANCELLED_MESSAGE = "Sync was cancelled before it finished"
TIMED_OUT_MESSAGE = "Sync took too long and was stopped"
UNEXPECTED_MESSAGE = "Sync failed because of an unexpected error"


class SyncController:
    """Runs sync jobs. One run per account at a time; runs for different accounts are independent."""

    def __init__(
        self,
        account_repo: AccountRepo,
        sync_job_repo: SyncJobRepo,
        message_repo: MessageRepo,
        token_controller: TokenController,
        adapters: dict[AccountProvider, ProviderAdapter],
        fetch_concurrency: int = 5,
        max_run_seconds: float | None = None,
    ) -> None:
        self._logger = logging.getLogger(__name__)
        self._account_repo = account_repo
        self._sync_job_repo = sync_job_repo
        self._message_repo = message_repo
        self._token_controller = token_controller
        self._adapters = adapters
        self._fetch_concurrency = max(1, fetch_concurrency)
        self._max_run_seconds = max_run_seconds

    async def run_sync(self, account: Account, job_type: SyncJobType) -> SyncJob:
        """
        Run one sync of `account` and return its finished job.

        Provider and credential failures don't raise; they end up in the job and on the account.

        Raises:
            InvalidDataError: the account is disconnected
            SyncInProgressError: another run holds the account
        """
        if not account.is_active:
            raise InvalidDataError("The account is disconnected", account=account.email)
        adapter = self._adapter(account.provider)

        if not await self._account_repo.try_mark_syncing(account):
            raise SyncInProgressError("A sync is already running for this account", account=account.email)

        started_at = datetime.now(UTC)
        job = await self._sync_job_repo.start(account, job_type, started_at)
        await self._sync_job_repo.commit()
        self._logger.info(f"Started {job_type.value} sync {job.uuid} for {account.email}")

        result = SyncResult()
        try:
            sync = self._sync(account, adapter, job_type, started_at, result)
            if self._max_run_seconds:
                await asyncio.wait_for(sync, timeout=self._max_run_seconds)
            else:
                await sync
        except BaseError as e:
            self._logger.warning(f"Sync {job.uuid} for {account.email} failed: {e}")
            await self._finish_failed(account, job, result, e.message)
        except asyncio.TimeoutError:
            self._logger.warning(f"Sync {job.uuid} for {account.email} exceeded {self._max_run_seconds}s")
            await self._finish_failed(account, job, result, TIMED_OUT_MESSAGE)
        except asyncio.CancelledError:
            self._logger.warning(f"Sync {job.uuid} for {account.email} was cancelled")
            await self._finish_failed(account, job, result, CANCELLED_MESSAGE)
            raise
        except Exception:
            self._logger.exception(f"Unexpected error in sync {job.uuid} for {account.email}")
            await self._account_repo.rollback()
            await self._account_repo.refresh(account)
            await self._sync_job_repo.refresh(job)
            await self._finish_failed(account, job, result, UNEXPECTED_MESSAGE)
            raise
        else:
            await self._finish_completed(account, job, result, started_at)

        return job

    async def sync_all_active(self, job_type: SyncJobType = SyncJobType.incremental) -> list[SyncJob]:
        """Run a sync for every active account, one after another."""
        jobs = []
        for account in await self._account_repo.get_all_active():
            try:
                jobs.append(await self.run_sync(account, job_type))
            except (SyncInProgressError, NotSupportedError, InvalidDataError) as e:
                self._logger.info(f"Skipping {account.email}: {e.message}")
            except Exception:
                self._logger.exception(f"Sync of {account.email} failed, continuing with the next account")
        return jobs

    async def _sync(
        self,
        account: Account,
        adapter: ProviderAdapter,
        job_type: SyncJobType,
        started_at: datetime,
        result: SyncResult,
    ) -> None:
        access_token = await self._token_controller.ensure_valid_token(account)
        # A first incremental run without a boundary degrades to a full one.
        since = account.last_sync_at if job_type == SyncJobType.incremental else None

        processed: set[str] = set()
        cursor: str | None = None
        while True:
            page, access_token = await self._sync_page(
                account, adapter, access_token, cursor, since, started_at, result, processed
            )
            await self._message_repo.commit()
            if not page.next_cursor:
                break
            cursor = page.next_cursor

    async def _sync_page(
        self,
        account: Account,
        adapter: ProviderAdapter,
        access_token: str,
        cursor: str | None,
        since: datetime | None,
        started_at: datetime,
        result: SyncResult,
        processed: set[str],
    ) -> tuple[MessagePage, str]:
        """List and ingest one page. A 401/403 gets exactly one refresh-and-retry for the whole page."""
        retried = False
        while True:
            try:
                page = await adapter.list_message_ids(access_token, cursor, since)
                await self._ingest(account, adapter, access_token, page.ids, started_at, result, processed)
                return page, access_token
            except AuthRejectedError as e:
                if retried:
                    raise
                retried = True
                self._logger.warning(f"{account.provider.value} rejected the token of {account.email}: {e}; refreshing")
                access_token = await self._token_controller.refresh_after_rejection(account, access_token)

    async def _ingest(
        self,
        account: Account,
        adapter: ProviderAdapter,
        access_token: str,
        message_ids: list[str],
        started_at: datetime,
        result: SyncResult,
        processed: set[str],
    ) -> None:
        # Ids handled before an auth retry of the same page are not fetched twice.
        pending = [message_id for message_id in dict.fromkeys(message_ids) if message_id not in processed]
        payloads = await self._fetch_all(adapter, access_token, pending)

        # Writes stay sequential: the session is not shared between tasks.
        for message_id, payload in zip(pending, payloads):
            if isinstance(payload, BaseException):
                raise payload
            try:
                normalized = MessageUtils.normalize(payload, account.provider, fallback_date=started_at)
            except MalformedMessageError as e:
                self._logger.warning(f"Skipping malformed message {message_id} of {account.email}: {e.message}")
                result.messages_skipped += 1
                result.skipped_ids.append(message_id)
                processed.add(message_id)
                continue

            await self._message_repo.upsert(normalized.to_record(account.user_id, account.id))
            result.messages_synced += 1
            processed.add(message_id)

    async def _fetch_all(
        self, adapter: ProviderAdapter, access_token: str, message_ids: list[str]
    ) -> list[dict[str, Any] | BaseException]:
        """Fetch message details with a fixed size pool. Results keep the order of `message_ids`."""
        semaphore = asyncio.Semaphore(self._fetch_concurrency)

        async def bounded_fetch(message_id: str) -> dict[str, Any]:
            async with semaphore:
                return await adapter.fetch_message(access_token, message_id)

        results = await asyncio.gather(*(bounded_fetch(mid) for mid in message_ids), return_exceptions=True)
        return list(results)

    async def _finish_completed(self, account: Account, job: SyncJob, result: SyncResult, started_at: datetime) -> None:
        await self._sync_job_repo.finish(
            job, SyncJobStatus.completed, result.messages_synced, result.messages_skipped
        )
        await self._account_repo.update(
            account, {"sync_status": SyncStatus.success, "last_sync_at": started_at, "error_message": None}
        )
        await self._account_repo.commit()
        skipped = f" ({', '.join(result.skipped_ids)})" if result.skipped_ids else ""
        self._logger.info(
            f"Sync {job.uuid} for {account.email} completed: {result.messages_synced} synced, "
            f"{result.messages_skipped} skipped{skipped}"
        )

    async def _finish_failed(self, account: Account, job: SyncJob, result: SyncResult, error_message: str) -> None:
        # last_sync_at is left alone so the next incremental run resumes from the last good boundary.
        await self._sync_job_repo.finish(
            job, SyncJobStatus.failed, result.messages_synced, result.messages_skipped, error_message
        )
        await self._account_repo.update(account, {"sync_status": SyncStatus.error, "error_message": error_message})
        await self._account_repo.commit()

    def _adapter(self, provider: AccountProvider) -> ProviderAdapter:
        adapter = self._adapters.get(provider)
        if adapter is None:
            raise NotSupportedError(f"Provider {provider.value} is not supported")
        return adapter
