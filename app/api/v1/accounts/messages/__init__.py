"""
Messages API router - outgoing mail for an account.
"""

from dependency_injector.wiring import Provide, inject
from fastapi import APIRouter, Depends, Path

from app.api.middlewares.authentication import get_current_user
from app.api.payloads import APIError, SendMessageData, SendMessageRequest, SendMessageResponse
from app.api.utils.errors import get_account_or_fail, new_request_id
from app.container import ApplicationContainer
from app.controllers.send.send_controller import SendController
from app.models.user import User

router = APIRouter()


@router.post(
    "/send",
    response_model=SendMessageResponse,
    responses={
        400: {"model": APIError, "description": "Invalid message or disconnected account"},
        401: {"model": APIError, "description": "Account needs to be reconnected"},
        502: {"model": APIError, "description": "Provider error"},
    },
    summary="Send a message",
    description="Sends a message through the account's provider. Outlook sends return no provider message id.",
)
@inject
async def send_message(
    message: SendMessageRequest,
    account_id: str = Path(...),
    user: User = Depends(get_current_user),
    send_controller: SendController = Depends(Provide[ApplicationContainer.controllers.send_controller]),
) -> SendMessageResponse:
    account = await get_account_or_fail(user.id, account_id)
    result = await send_controller.send_message(
        account,
        to=message.to,
        subject=message.subject,
        body_text=message.body_text,
        body_html=message.body_html,
        cc=message.cc,
        bcc=message.bcc,
    )
    return SendMessageResponse(
        request_id=new_request_id(), data=SendMessageData(provider_message_id=result.provider_message_id)
    )
