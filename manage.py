#!/usr/bin/env python3
"""
Mailsync maintenance commands.

Usage:
    python manage.py --mode list
    python manage.py --mode sync --account <account uuid> [--type full|incremental]
    python manage.py --mode sync-all [--type full|incremental]
    python manage.py --mode cleanup

Modes:
    - list: Print every active account with its sync status
    - sync: Run one sync of an account
    - sync-all: Run a sync of every active account, one after another (cron entry point)
    - cleanup: Delete expired OAuth authorization requests
"""

import argparse
import asyncio
import logging
import sys
import uuid

from dotenv import load_dotenv

load_dotenv(override=True)
from app.container import ApplicationContainer  # noqa: E402
from app.db import fastapi_sqlalchemy_context  # noqa: E402
from app.exceptions import BaseError  # noqa: E402
from app.models.sync_job import SyncJobType  # noqa: E402
from logging_config import setup_logging  # noqa: E402

setup_logging()

logger = logging.getLogger(__name__)

container = ApplicationContainer()


async def list_accounts() -> None:
    async with fastapi_sqlalchemy_context():
        accounts = await container.repos.account().get_all_active()
        if not accounts:
            logger.info("No active accounts found in database.")
            return

        logger.info(f"Found {len(accounts)} active accounts:")
        logger.info("-" * 100)
        for i, account in enumerate(accounts, 1):
            last_sync = account.last_sync_at.isoformat() if account.last_sync_at else "never"
            logger.info(
                f"{i:3d}. {account.uuid} {account.email:35} {account.provider.value:8} "
                f"{account.sync_status.value:8} {last_sync}"
            )
        logger.info("-" * 100)


async def sync_account(account_id: str, job_type: SyncJobType) -> None:
    async with fastapi_sqlalchemy_context():
        try:
            account = await container.repos.account().get_by_uuid(uuid.UUID(account_id))
        except ValueError:
            account = None
        if account is None:
            logger.error(f"Account {account_id} not found")
            return

        try:
            job = await container.controllers.sync_controller().run_sync(account, job_type)
        finally:
            await container.controllers.provider_http_client().close_session()
        logger.info(
            f"Sync {job.uuid} finished as {job.status.value}: {job.messages_synced} synced, "
            f"{job.messages_skipped} skipped{f' ({job.error_message})' if job.error_message else ''}"
        )


async def sync_all(job_type: SyncJobType) -> None:
    async with fastapi_sqlalchemy_context():
        try:
            jobs = await container.controllers.sync_controller().sync_all_active(job_type)
        finally:
            await container.controllers.provider_http_client().close_session()

        failed = [job for job in jobs if job.error_message]
        logger.info(f"Ran {len(jobs)} syncs, {len(failed)} failed")


async def cleanup() -> None:
    async with fastapi_sqlalchemy_context():
        repo = container.repos.oauth2_authorization_request()
        count = await repo.cleanup_expired()
        await repo.commit()
        logger.info(f"Deleted {count} expired authorization requests")


def main() -> None:
    parser = argparse.ArgumentParser(description="Mailsync maintenance commands")
    parser.add_argument("--mode", choices=["list", "sync", "sync-all", "cleanup"], default="list", help="Command")
    parser.add_argument("--account", help="Account uuid for --mode sync")
    parser.add_argument(
        "--type",
        choices=[job_type.value for job_type in SyncJobType],
        default=SyncJobType.incremental.value,
        help="Sync job type",
    )

    args = parser.parse_args()
    job_type = SyncJobType(args.type)

    try:
        if args.mode == "list":
            asyncio.run(list_accounts())
        elif args.mode == "sync":
            if not args.account:
                parser.error("--account is required for --mode sync")
            asyncio.run(sync_account(args.account, job_type))
        elif args.mode == "sync-all":
            asyncio.run(sync_all(job_type))
        elif args.mode == "cleanup":
            asyncio.run(cleanup())

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
    except BaseError as e:
        logger.error(f"{args.mode} failed: {e.message}")
        sys.exit(1)
    except Exception:
        logger.exception("Command failed")
        sys.exit(1)


if __name__ == "__main__":
    main()
