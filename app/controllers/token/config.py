from dataclasses import dataclass, field

from app.models.account import AccountProvider

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
MICROSOFT_AUTHORIZE_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
MICROSOFT_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"


@dataclass(frozen=True)
class OAuthClientConfig:
    """Client credentials and endpoints of one OAuth provider."""

    provider: AccountProvider
    client_id: str
    client_secret: str
    redirect_uri: str
    scopes: str
    authorize_url: str
    token_url: str
    # Extra consent parameters; Google needs offline access to hand out a refresh token.
    authorize_params: dict[str, str] = field(default_factory=dict)
    # Microsoft wants the scope repeated on token requests.
    scope_on_token_request: bool = False


def build_oauth_client_configs(gmail: object, outlook: object) -> dict[AccountProvider, OAuthClientConfig]:
    """Build the per-provider configs from the gmail / outlook settings sections."""
    return {
        AccountProvider.gmail: OAuthClientConfig(
            provider=AccountProvider.gmail,
            client_id=getattr(gmail, "client_id"),
            client_secret=getattr(gmail, "client_secret"),
            redirect_uri=getattr(gmail, "redirect_uri"),
            scopes=getattr(gmail, "scopes"),
            authorize_url=GOOGLE_AUTHORIZE_URL,
            token_url=GOOGLE_TOKEN_URL,
            authorize_params={"access_type": "offline", "prompt": "consent", "include_granted_scopes": "true"},
        ),
        AccountProvider.outlook: OAuthClientConfig(
            provider=AccountProvider.outlook,
            client_id=getattr(outlook, "client_id"),
            client_secret=getattr(outlook, "client_secret"),
            redirect_uri=getattr(outlook, "redirect_uri"),
            scopes=getattr(outlook, "scopes"),
            authorize_url=MICROSOFT_AUTHORIZE_URL,
            token_url=MICROSOFT_TOKEN_URL,
            authorize_params={"response_mode": "query"},
            scope_on_token_request=True,
        ),
    }
