from dependency_injector import containers, providers

from app.repos.account import AccountRepo
from app.repos.message import MessageRepo
from app.repos.oauth2 import OAuth2AuthorizationRequestRepo
from app.repos.oauth_token import OAuthTokenRepo
from app.repos.sync_job import SyncJobRepo
from app.repos.user import UserRepo


class RepoContainer(containers.DeclarativeContainer):
    user = providers.Singleton(UserRepo)
    account = providers.Singleton(AccountRepo)
    oauth_token = providers.Singleton(OAuthTokenRepo)
    oauth2_authorization_request = providers.Singleton(OAuth2AuthorizationRequestRepo)
    sync_job = providers.Singleton(SyncJobRepo)
    message = providers.Singleton(MessageRepo)
