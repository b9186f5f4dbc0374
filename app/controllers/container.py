from typing import cast

from dependency_injector import containers, providers

from app.controllers.connect.connection_controller import ConnectionController
from app.controllers.providers.gmail import GmailAdapter
from app.controllers.providers.http_client import ProviderHttpClient
from app.controllers.providers.outlook import OutlookAdapter
from app.controllers.send.send_controller import SendController
from app.controllers.sync.sync_controller import SyncController
from app.controllers.token.config import build_oauth_client_configs
from app.controllers.token.token_controller import TokenController
from app.models.account import AccountProvider
from app.repos.container import RepoContainer
from settings import settings


class ControllerContainer(containers.DeclarativeContainer):
    repos: RepoContainer = cast(RepoContainer, providers.DependenciesContainer())

    provider_http_client = providers.Singleton(ProviderHttpClient, timeout=settings.provider.timeout)

    gmail_adapter = providers.Singleton(
        GmailAdapter, http_client=provider_http_client, page_size=settings.sync.page_size
    )
    outlook_adapter = providers.Singleton(OutlookAdapter, http_client=provider_http_client)
    adapters = providers.Dict(
        {
            AccountProvider.gmail: gmail_adapter,
            AccountProvider.outlook: outlook_adapter,
        }
    )

    oauth_client_configs = providers.Singleton(
        build_oauth_client_configs, gmail=settings.gmail, outlook=settings.outlook
    )

    token_controller = providers.Singleton(
        TokenController,
        oauth_token_repo=repos.oauth_token,
        http_client=provider_http_client,
        client_configs=oauth_client_configs,
    )

    sync_controller = providers.Singleton(
        SyncController,
        account_repo=repos.account,
        sync_job_repo=repos.sync_job,
        message_repo=repos.message,
        token_controller=token_controller,
        adapters=adapters,
        fetch_concurrency=settings.sync.fetch_concurrency,
        max_run_seconds=settings.sync.max_run_seconds,
    )

    connection_controller = providers.Singleton(
        ConnectionController,
        account_repo=repos.account,
        oauth2_authorization_request_repo=repos.oauth2_authorization_request,
        token_controller=token_controller,
        adapters=adapters,
    )

    send_controller = providers.Singleton(SendController, token_controller=token_controller, adapters=adapters)
