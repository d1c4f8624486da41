"""
Application error hierarchy and FastAPI exception handlers.

AppError is the base for all typed errors. The verification service turns
ConfigError, PolicyError and VerifierError into VerificationResult statuses;
everything else that reaches the HTTP layer is rendered by the global handler.

Non-AppError exceptions bubble up as 500s (with Sentry reporting in production).
"""

from __future__ import annotations

from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base application error. All typed errors inherit from this."""

    status_code: int = 500
    error_code: str = "internal_error"

    def __init__(
        self,
        message: str,
        *,
        details: Optional[Any] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.details = details

    def to_dict(self) -> dict:
        payload: dict = {"error": self.message, "code": self.error_code}
        if self.details is not None:
            payload["details"] = self.details
        return payload


# ── Configuration sources ────────────────────────────────────────────────────


class ConfigError(AppError):
    error_code = "config_error"


class ConfigKeyNotFoundError(ConfigError):
    error_code = "config_key_not_found"

    def __init__(self, key: str, message: Optional[str] = None) -> None:
        super().__init__(message or f"config key {key!r} not set")
        self.key = key


class MisconfiguredSourceError(ConfigError):
    error_code = "config_source_misconfigured"


class RemoteSourceError(ConfigError):
    error_code = "config_source_unavailable"


class UnknownConfigProviderError(ConfigError):
    error_code = "config_provider_unknown"


class FatalConfigError(AppError):
    """A required configuration key is missing; the deployment is broken.

    Intentionally not a ConfigError so request-path handlers never recover it.
    """

    error_code = "config_fatal"


# ── Policy document ──────────────────────────────────────────────────────────


class PolicyError(AppError):
    error_code = "policy_error"


class MissingPolicyPathError(PolicyError):
    error_code = "policy_path_missing"


class PolicyFileUnreadableError(PolicyError):
    error_code = "policy_file_unreadable"


class InvalidPolicyDocumentError(PolicyError):
    error_code = "policy_document_invalid"


# ── Verification ─────────────────────────────────────────────────────────────


class VerifierError(AppError):
    status_code = 502
    error_code = "verify_error"


class CaptchaProviderError(AppError):
    """The policy document declares no usable provider (raised at startup)."""

    error_code = "captcha_provider_invalid"


class CaptchaRejectedError(AppError):
    """Raised by require_captcha(); the body is the VerificationResult itself."""

    status_code = 400
    error_code = "captcha_rejected"

    def __init__(self, result: Any, *, status_code: Optional[int] = None) -> None:
        super().__init__(result.message)
        self.result = result
        if status_code is not None:
            self.status_code = status_code

    def to_dict(self) -> dict:
        return self.result.model_dump(mode="json")


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the FastAPI app."""

    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

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
