import enum
from http import HTTPStatus
from typing import Any


class ErrorType(enum.Enum):
    CREDENTIAL_EXCHANGE = "credential_exchange_error"
    ENTITY_NOT_FOUND = "entity_not_found"
    INVALID_DATA = "invalid_data"
    MALFORMED_MESSAGE = "malformed_message"
    NOT_SUPPORTED = "not_supported"
    PROVIDER_API = "provider_api_error"
    PROVIDER_AUTH_REJECTED = "provider_auth_rejected"
    REFRESH_FAILED = "refresh_failed"
    SYNC_IN_PROGRESS = "sync_in_progress"
    TRANSIENT_NETWORK = "transient_network_error"
    UNHANDLED_EXCEPTION = "unhandled_exception"
    UNSPECIFIED = "unspecified"


class BaseError(Exception):
    extra: dict[str, Any]
    retryable: bool = False

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.UNSPECIFIED,
        status_code: HTTPStatus = HTTPStatus.INTERNAL_SERVER_ERROR,
        **kwargs: Any,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.error_type = error_type
        self.status_code = status_code
        self.extra = {}

        for key in ("account", "provider"):
            value = kwargs.get(key)
            if value:
                self.extra[key] = value

    def __str__(self) -> str:
        return f"error: {self.error_type.value}; description: {self.message}"


class EntityNotFoundError(BaseError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.ENTITY_NOT_FOUND,
        status_code: HTTPStatus = HTTPStatus.NOT_FOUND,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class InvalidDataError(BaseError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.INVALID_DATA,
        status_code: HTTPStatus = HTTPStatus.BAD_REQUEST,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class NotSupportedError(BaseError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.NOT_SUPPORTED,
        status_code: HTTPStatus = HTTPStatus.BAD_REQUEST,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class SyncInProgressError(BaseError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.SYNC_IN_PROGRESS,
        status_code: HTTPStatus = HTTPStatus.CONFLICT,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class CredentialExchangeError(BaseError):
    """The provider refused to exchange an authorization code (bad, expired or reused code)."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.CREDENTIAL_EXCHANGE,
        status_code: HTTPStatus = HTTPStatus.BAD_REQUEST,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class RefreshFailedError(BaseError):
    """The refresh token was rejected. The account has to be re-authorized."""

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.REFRESH_FAILED,
        status_code: HTTPStatus = HTTPStatus.UNAUTHORIZED,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class TransientNetworkError(BaseError):
    """Timeout, connection failure or 5xx from a provider. Safe to retry later."""

    retryable = True

    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.TRANSIENT_NETWORK,
        status_code: HTTPStatus = HTTPStatus.BAD_GATEWAY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)


class ProviderApiError(BaseError):
    """Non-2xx response from a provider API."""

    def __init__(
        self,
        message: str,
        provider_status: int,
        provider_message: str = "",
        error_type: ErrorType = ErrorType.PROVIDER_API,
        status_code: HTTPStatus = HTTPStatus.BAD_GATEWAY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)
        self.provider_status = provider_status
        self.provider_message = provider_message


class AuthRejectedError(ProviderApiError):
    """A provider answered 401/403 to an API call made with our access token."""

    def __init__(
        self,
        message: str,
        provider_status: int,
        provider_message: str = "",
        error_type: ErrorType = ErrorType.PROVIDER_AUTH_REJECTED,
        status_code: HTTPStatus = HTTPStatus.BAD_GATEWAY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, provider_status, provider_message, error_type, status_code, **kwargs)


class MalformedMessageError(BaseError):
    def __init__(
        self,
        message: str,
        error_type: ErrorType = ErrorType.MALFORMED_MESSAGE,
        status_code: HTTPStatus = HTTPStatus.UNPROCESSABLE_ENTITY,
        **kwargs: Any,
    ) -> None:
        super().__init__(message, error_type, status_code, **kwargs)
