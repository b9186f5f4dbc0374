"""Tests for repository statements and the bookkeeping they do on loaded models."""

from datetime import UTC, datetime
from unittest.mock import Mock

import pytest
from conftest import bind_session, make_account
from sqlalchemy.dialects import postgresql

from app.controllers.sync.message import NormalizedMessage
from app.models.account import SyncStatus
from app.models.sync_job import SyncJobStatus, SyncJobType
from app.repos.account import AccountRepo
from app.repos.message import build_upsert_stmt


def compiled_upsert() -> str:
    record = NormalizedMessage(
        message_id="m1",
        subject="Hello",
        date=datetime(2024, 1, 1, tzinfo=UTC),
        labels=["INBOX"],
    ).to_record(user_id=7, account_id=3)
    return str(build_upsert_stmt(record).compile(dialect=postgresql.dialect()))


def test_upsert_conflicts_on_owner_and_message_id():
    assert "ON CONFLICT (user_id, message_id) DO UPDATE" in compiled_upsert()


def test_upsert_only_overwrites_flags():
    set_clause = compiled_upsert().split("DO UPDATE SET", 1)[1]
    for column in ("is_read", "is_starred", "is_spam", "labels", "updated_at"):
        assert f"{column} =" in set_clause
    for column in ("subject", "body_text", "body_html", "from_address", "date", "account_id"):
        assert f"{column} =" not in set_clause


def test_record_carries_owner_and_account():
    record = NormalizedMessage(message_id="m1").to_record(user_id=7, account_id=3)
    assert record["user_id"] == 7
    assert record["account_id"] == 3
    assert record["to_addresses"] == []


async def test_try_mark_syncing_acquires_the_account(session):
    repo = bind_session(AccountRepo(), session)
    account = make_account()
    session.execute.return_value = Mock(scalar_one_or_none=Mock(return_value=account.id))

    assert await repo.try_mark_syncing(account) is True
    assert account.sync_status == SyncStatus.syncing
    sql = str(session.execute.await_args.args[0].compile(dialect=postgresql.dialect()))
    assert "WHERE accounts.id = " in sql
    assert "accounts.sync_status != " in sql


async def test_try_mark_syncing_loses_to_running_sync(session):
    repo = bind_session(AccountRepo(), session)
    account = make_account(sync_status=SyncStatus.error)
    session.execute.return_value = Mock(scalar_one_or_none=Mock(return_value=None))

    assert await repo.try_mark_syncing(account) is False
    assert account.sync_status == SyncStatus.error


async def test_finishing_a_finished_job_is_refused(sync_job_repo):
    job = await sync_job_repo.start(make_account(), SyncJobType.full, datetime.now(UTC))
    await sync_job_repo.finish(job, SyncJobStatus.completed, 3, 0)

    with pytest.raises(ValueError):
        await sync_job_repo.finish(job, SyncJobStatus.failed, 3, 0, "late failure")
    assert job.status == SyncJobStatus.completed
    assert job.error_message is None


async def test_cleanup_expired_requests(oauth2_request_repo, session):
    session.execute.return_value = Mock(rowcount=4)

    assert await oauth2_request_repo.cleanup_expired() == 4
    sql = str(session.execute.await_args.args[0].compile(dialect=postgresql.dialect()))
    assert sql.startswith("DELETE FROM oauth2_authorization_requests WHERE")
