from .account import AccountRepo
from .message import MessageRepo
from .oauth2 import OAuth2AuthorizationRequestRepo
from .oauth_token import OAuthTokenRepo
from .sync_job import SyncJobRepo
from .user import UserRepo

__all__ = [
    "AccountRepo",
    "MessageRepo",
    "OAuth2AuthorizationRequestRepo",
    "OAuthTokenRepo",
    "SyncJobRepo",
    "UserRepo",
]
