"""Error kinds and the exceptions raised past the normalization boundary."""
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ErrorKind(str, Enum):
    """Closed set of error kinds surfaced to callers."""

    INVALID_FORMAT = "INVALID_FORMAT"
    INVALID_RESPONSE_FORMAT = "INVALID_RESPONSE_FORMAT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    CONNECTION_ERROR = "CONNECTION_ERROR"
    TIMEOUT = "TIMEOUT"
    QUOTA_EXCEEDED = "QUOTA_EXCEEDED"
    NOT_APPROVED = "NOT_APPROVED"
    UPSTREAM_ERROR = "UPSTREAM_ERROR"


class FormatErrorPayload(BaseModel):
    """Diagnostics attached to a result when no known format was found."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    kind: ErrorKind = ErrorKind.INVALID_RESPONSE_FORMAT
    message: str
    preview: str = ""
    received_keys: list[str] = Field(default_factory=list)
    expected_formats: list[str] = Field(default_factory=list)


class QuotaExceededPayload(BaseModel):
    """Capacity numbers reported with a quota failure."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str = "Branch quota exceeded"
    current_count: int
    adding: int
    need_to_add: int
    subscribed_count: int


class EngineError(Exception):
    """Base class for errors that are raised rather than recovered locally."""

    kind: ErrorKind = ErrorKind.UPSTREAM_ERROR

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.kind.value, "message": self.message, "details": self.details}


class SupplierConnectionError(EngineError):
    """The supplier endpoint could not be reached."""

    kind = ErrorKind.CONNECTION_ERROR


class SupplierTimeoutError(SupplierConnectionError):
    """A call exceeded its fixed time budget."""

    kind = ErrorKind.TIMEOUT


class NotApprovedError(EngineError):
    """The account is not approved for this operation yet."""

    kind = ErrorKind.NOT_APPROVED


class UpstreamError(EngineError):
    """Any other error returned by an upstream system."""

    kind = ErrorKind.UPSTREAM_ERROR

    def __init__(self, message: str, status_code: Optional[int] = None, details: Optional[dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code


class QuotaExceededError(EngineError):
    """Importing would exceed the subscribed branch capacity."""

    kind = ErrorKind.QUOTA_EXCEEDED

    def __init__(self, payload: QuotaExceededPayload):
        super().__init__(payload.message, payload.model_dump(by_alias=True))
        self.payload = payload


class VerificationInProgressError(EngineError):
    """A verification run is already in progress."""


class NoPendingRetryError(EngineError):
    """Confirm was requested without a pending quota prompt."""


QUOTA_ERROR_CODES = ("BRANCH_QUOTA_EXCEEDED", "QUOTA_EXCEEDED")


def classify_error_response(status_code: int, body: Any) -> EngineError:
    """Map an error response from an upstream API to an exception."""
    data = body if isinstance(body, dict) else {}
    code = str(data.get("error") or data.get("code") or "")
    message = data.get("message") or (body if isinstance(body, str) and body.strip() else None)
    message = message or f"HTTP {status_code}"

    if code in QUOTA_ERROR_CODES:
        try:
            payload = QuotaExceededPayload(
                message=message,
                current_count=int(data.get("currentCount", 0)),
                adding=int(data.get("adding", 0)),
                need_to_add=int(data.get("needToAdd", 0)),
                subscribed_count=int(data.get("subscribedCount", 0)),
            )
        except (TypeError, ValueError):
            return UpstreamError(message, status_code=status_code, details=data)
        return QuotaExceededError(payload)

    if code == ErrorKind.NOT_APPROVED.value:
        return NotApprovedError(message, details=data)

    return UpstreamError(str(message)[:500], status_code=status_code, details=data)
