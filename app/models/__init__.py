from .account import Account, AccountProvider, SyncStatus
from .base import Base
from .message import Message
from .oauth2 import OAuth2AuthorizationRequest
from .oauth_token import OAuthToken
from .sync_job import SyncJob, SyncJobStatus, SyncJobType
from .user import User

__all__ = [
    "Base",
    "Account",
    "AccountProvider",
    "Message",
    "OAuth2AuthorizationRequest",
    "OAuthToken",
    "SyncJob",
    "SyncJobStatus",
    "SyncJobType",
    "SyncStatus",
    "User",
]
