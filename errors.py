"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The global exception handler
converts AppError subclasses to consistent JSON responses.

OTP failures fall into three closed groups:

- PolicyDenial: expected and user-actionable (cooldown, daily limit, bad
  format, expired, wrong code, lockout). Carries a DenialKind plus
  structured retry/attempt fields.
- DeliveryError: the external sender failed; nothing was committed.
- ServiceUnavailableError: the store is missing or failing. The message is
  always generic so store topology never leaks.

Callers branch on the class and its fields, never on message text.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class DenialKind(str, Enum):
    COOLDOWN = "cooldown"
    DAILY_LIMIT = "daily_limit"
    INVALID_FORMAT = "invalid_format"
    EXPIRED = "expired"
    INVALID_CODE = "invalid_code"
    LOCKED = "locked"


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        field: Optional[str] = None,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.field = field
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.field is not None:
            payload["field"] = self.field
        if self.details is not None:
            payload["details"] = self.details
        return payload


class ValidationError(AppError):
    status_code = 400
    error_code = "validation_error"


class NotFoundError(AppError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AppError):
    status_code = 409
    error_code = "conflict"


class RegistrationExpiredError(NotFoundError):
    error_code = "registration_expired"

    def __init__(
        self, message: str = "Registration session expired. Please start again."
    ) -> None:
        super().__init__(message)


# ── Policy denials ────────────────────────────────────────────────────────────


class PolicyDenial(AppError):
    """Expected, user-actionable refusal. Never logged as severe."""

    status_code = 400
    error_code = "policy_denied"
    kind: DenialKind

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["kind"] = self.kind.value
        return payload


class RateLimitError(PolicyDenial):
    status_code = 429
    error_code = "rate_limit_exceeded"

    def __init__(
        self,
        message: str,
        *,
        kind: DenialKind = DenialKind.COOLDOWN,
        retry_after_seconds: Optional[int] = None,
    ) -> None:
        super().__init__(message)
        self.kind = kind
        self.retry_after_seconds = retry_after_seconds

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.retry_after_seconds is not None:
            payload["retry_after_seconds"] = self.retry_after_seconds
        return payload


class InvalidOtpFormatError(PolicyDenial):
    error_code = "invalid_otp_format"
    kind = DenialKind.INVALID_FORMAT

    def __init__(self, message: str = "OTP must contain only digits.") -> None:
        super().__init__(message, field="otp")


class OtpExpiredError(PolicyDenial):
    status_code = 410
    error_code = "otp_expired"
    kind = DenialKind.EXPIRED

    def __init__(self, message: str = "OTP has expired or does not exist.") -> None:
        super().__init__(message)


class InvalidOtpError(PolicyDenial):
    error_code = "invalid_otp"
    kind = DenialKind.INVALID_CODE

    def __init__(
        self, attempts_remaining: int, message: str = "Invalid OTP. Please try again."
    ) -> None:
        super().__init__(message, field="otp")
        self.attempts_remaining = attempts_remaining

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["attempts_remaining"] = self.attempts_remaining
        return payload


class OtpLockedError(PolicyDenial):
    status_code = 403
    error_code = "otp_locked"
    kind = DenialKind.LOCKED

    def __init__(
        self,
        message: str = "Too many failed attempts. This OTP has been invalidated.",
    ) -> None:
        super().__init__(message)


# ── Delivery and infrastructure failures ──────────────────────────────────────


class DeliveryError(AppError):
    """The external sender could not deliver the message."""

    status_code = 502
    error_code = "delivery_failed"


class DeliveryUnavailableError(DeliveryError):
    """The sender is temporarily unreachable (timeout, 5xx, transport error)."""

    status_code = 503
    error_code = "delivery_unavailable"


class ServiceUnavailableError(AppError):
    status_code = 503
    error_code = "service_unavailable"

    def __init__(self, message: str = "Service temporarily unavailable.") -> None:
        super().__init__(message)


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        headers = None
        if isinstance(exc, RateLimitError) and exc.retry_after_seconds is not None:
            headers = {"Retry-After": str(exc.retry_after_seconds)}
        return JSONResponse(
            status_code=exc.status_code, content=exc.to_dict(), headers=headers
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        # Sentry integration: if sentry_sdk is initialized it will auto-capture
        # unhandled exceptions before this handler fires.
        return JSONResponse(
            status_code=500,
            content={"error": "An internal server error occurred.", "code": "internal_error"},
        )
