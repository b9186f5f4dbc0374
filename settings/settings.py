import logging

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings

from app.environment import EnvironmentName
from settings.log import LoggingSettings


class DatabaseSettings(BaseSettings):
    host: str = Field(alias="DATABASE_HOST", default="postgresql://localhost:5432")
    name: str = Field(alias="DATABASE_NAME", default="mailsync")
    min_pool_size: int = Field(alias="DATABASE_MIN_POOL_SIZE", default=5)
    max_pool_size: int = Field(alias="DATABASE_MAX_POOL_SIZE", default=20)

    @property
    def async_host(self) -> str:
        """Return the host URL with async driver for SQLAlchemy async engine."""
        return self.host.replace("postgresql://", "postgresql+asyncpg://", 1)


class ProviderSettings(BaseSettings):
    timeout: int = Field(alias="PROVIDER_TIMEOUT", default=30)


class SyncSettings(BaseSettings):
    page_size: int = Field(alias="SYNC_PAGE_SIZE", default=100, ge=1, le=100)
    fetch_concurrency: int = Field(alias="SYNC_FETCH_CONCURRENCY", default=5, ge=1, le=10)
    max_run_seconds: int = Field(alias="SYNC_MAX_RUN_SECONDS", default=900)
    sync_on_connect: bool = Field(alias="SYNC_ON_CONNECT", default=True)


class GmailSettings(BaseSettings):
    client_id: str = Field(alias="GMAIL_CLIENT_ID", default="")
    client_secret: str = Field(alias="GMAIL_CLIENT_SECRET", default="")
    redirect_uri: str = Field(alias="GMAIL_REDIRECT_URI", default="")
    scopes: str = Field(
        alias="GMAIL_SCOPES",
        default=(
            "https://www.googleapis.com/auth/gmail.readonly "
            "https://www.googleapis.com/auth/gmail.send "
            "https://www.googleapis.com/auth/gmail.modify"
        ),
    )


class OutlookSettings(BaseSettings):
    client_id: str = Field(alias="OUTLOOK_CLIENT_ID", default="")
    client_secret: str = Field(alias="OUTLOOK_CLIENT_SECRET", default="")
    redirect_uri: str = Field(alias="OUTLOOK_REDIRECT_URI", default="")
    scopes: str = Field(
        alias="OUTLOOK_SCOPES",
        default=(
            "https://graph.microsoft.com/Mail.Read https://graph.microsoft.com/Mail.Send "
            "https://graph.microsoft.com/Mail.ReadWrite https://graph.microsoft.com/User.Read offline_access"
        ),
    )


class SentrySettings(BaseSettings):
    dsn: str | None = Field(alias="SENTRY_DSN", default=None)

    @property
    def is_enabled(self) -> bool:
        return bool(self.dsn)


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "extra": "allow"}

    environment: EnvironmentName = Field(alias="ENVIRONMENT")
    token_encryption_key: str = Field(alias="TOKEN_ENCRYPTION_KEY")

    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    provider: ProviderSettings = Field(default_factory=ProviderSettings)
    sync: SyncSettings = Field(default_factory=SyncSettings)
    gmail: GmailSettings = Field(default_factory=GmailSettings)
    outlook: OutlookSettings = Field(default_factory=OutlookSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @field_validator("environment", mode="before")
    def set_environment(cls, level: str, info: ValidationInfo) -> EnvironmentName:
        try:
            return EnvironmentName(level)
        except ValueError:
            logging.getLogger(__name__).warning(f"Invalid environment: {level}")
            return EnvironmentName.DEVELOPMENT
