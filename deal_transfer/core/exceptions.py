"""Application exceptions."""

from typing import Any


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(AppException):
    """Required settings are missing or invalid. Fatal at startup."""

    pass


class BitrixAPIError(AppException):
    """Bitrix24 API error.

    Carries the REST method name, the remote error code and its
    human-readable description when the remote envelope provided them.
    """

    def __init__(
        self,
        message: str,
        method: str | None = None,
        code: str | None = None,
        description: str | None = None,
    ):
        super().__init__(
            message,
            {"method": method, "code": code, "description": description},
        )
        self.method = method
        self.code = code
        self.description = description


class BitrixRateLimitError(BitrixAPIError):
    """Bitrix24 rate limit exceeded."""

    pass


class BitrixAuthError(BitrixAPIError):
    """Bitrix24 authentication error."""

    pass


class PaginationLimitError(BitrixAPIError):
    """A list method kept returning a next cursor past the page ceiling."""

    pass


class DealNotFoundError(AppException):
    """Source deal fetch returned an empty result."""

    def __init__(self, deal_id: Any):
        super().__init__(f"Deal {deal_id} not found", {"deal_id": deal_id})
        self.deal_id = deal_id
        self.status_code = 404


class TransferError(AppException):
    """Transfer of a deal failed at the parent level."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message, details)
        self.status_code = 500
