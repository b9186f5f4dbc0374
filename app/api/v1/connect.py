"""
Connect router - starts and completes the OAuth consent flow for Gmail and Outlook mailboxes.
"""

import logging
import uuid

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Query

from app.api.middlewares.authentication import get_current_user
from app.api.payloads import AccountData, AccountResponse, APIError, AuthorizationUrlResponse, ConnectionCallbackRequest
from app.api.utils.errors import new_request_id
from app.container import ApplicationContainer
from app.controllers.connect.connection_controller import ConnectionController
from app.controllers.sync.sync_controller import SyncController
from app.exceptions import InvalidDataError
from app.models.account import AccountProvider
from app.models.sync_job import SyncJobType
from app.models.user import User
from settings import settings

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get(
    "/{provider}/auth",
    response_model=AuthorizationUrlResponse,
    responses={400: {"model": APIError, "description": "Invalid request parameters"}},
    summary="Start connecting a mailbox",
    description="Returns the provider consent URL. The state it carries is valid for 10 minutes and single use.",
)
@inject
async def initiate_connection(
    provider: AccountProvider,
    login_hint: str | None = Query(None, description="Mailbox address to preselect on the consent screen"),
    account_id: str | None = Query(None, description="Existing account to reconnect"),
    user: User = Depends(get_current_user),
    connection_controller: ConnectionController = Depends(Provide[ApplicationContainer.controllers.connection_controller]),
) -> AuthorizationUrlResponse:
    account_uuid = None
    if account_id:
        try:
            account_uuid = uuid.UUID(account_id)
        except ValueError as e:
            raise InvalidDataError("Invalid account id") from e

    authorization_url = await connection_controller.initiate_connection(user, provider, login_hint, account_uuid)
    return AuthorizationUrlResponse(request_id=new_request_id(), authorization_url=authorization_url)


@router.post(
    "/{provider}/callback",
    response_model=AccountResponse,
    responses={
        400: {"model": APIError, "description": "Authorization code or state rejected"},
        409: {"model": APIError, "description": "The mailbox is syncing right now"},
        502: {"model": APIError, "description": "Provider unavailable"},
    },
    summary="Complete connecting a mailbox",
    description="Exchanges the authorization code, stores the account and its credential, and runs a first sync",
)
@inject
async def complete_connection(
    provider: AccountProvider,
    callback: ConnectionCallbackRequest,
    user: User = Depends(get_current_user),
    connection_controller: ConnectionController = Depends(Provide[ApplicationContainer.controllers.connection_controller]),
    sync_controller: SyncController = Depends(Provide[ApplicationContainer.controllers.sync_controller]),
) -> AccountResponse:
    account = await connection_controller.complete_connection(user, provider, callback.code, callback.state)
    if settings.sync.sync_on_connect:
        job = await sync_controller.run_sync(account, SyncJobType.full)
        logger.info(f"Initial sync of {account.email} finished as {job.status.value}")

    return AccountResponse(request_id=new_request_id(), data=AccountData.from_account(account))
