"""
API payloads package for Pydantic request/response models.
"""

from .accounts import (
    AccountData,
    AccountListResponse,
    AccountResponse,
    DeleteAccountResponse,
    SyncJobData,
    SyncJobListResponse,
    SyncJobResponse,
    TriggerSyncRequest,
)
from .error import APIError
from .messages import SendMessageData, SendMessageRequest, SendMessageResponse
from .oauth2 import AuthorizationUrlResponse, ConnectionCallbackRequest

__all__ = [
    "APIError",
    "AccountData",
    "AccountListResponse",
    "AccountResponse",
    "AuthorizationUrlResponse",
    "ConnectionCallbackRequest",
    "DeleteAccountResponse",
    "SendMessageData",
    "SendMessageRequest",
    "SendMessageResponse",
    "SyncJobData",
    "SyncJobListResponse",
    "SyncJobResponse",
    "TriggerSyncRequest",
]
