"""
FastAPI dependency providers.

Everything here reads the components create_app() stores on app.state.

require_captcha(action) is the gate: add it to a route's dependencies and the
route only runs when the request carries a token that passes verification
for ``action``. Rejections raise CaptchaRejectedError, which the global
handler renders as the VerificationResult JSON.

    @router.post("/login", dependencies=[Depends(require_captcha("login"))])
    async def login(...): ...
"""

from __future__ import annotations

import json
from typing import Awaitable, Callable, Optional

from fastapi import Request
from starlette.exceptions import HTTPException
from starlette.formparsers import MultiPartException

from config import AppSettings
from errors import CaptchaRejectedError
from schemas.dto.responses.captcha import VerificationResult, VerificationStatus
from services.captcha_service import CaptchaService
from services.config_resolver import ConfigResolver
from services.policy_store import PolicyCache
from shared.ip_utils import get_client_ip

TOKEN_HEADER = "X-Captcha-Token"
TOKEN_FORM_FIELDS = ("cf-turnstile-response", "g-recaptcha-response", "token")
_FORM_CONTENT_TYPES = ("application/x-www-form-urlencoded", "multipart/form-data")


def get_settings(request: Request) -> AppSettings:
    """Return the AppSettings instance stored on app.state."""
    return request.app.state.settings


def get_captcha_service(request: Request) -> CaptchaService:
    return request.app.state.captcha_service


def get_policy_cache(request: Request) -> PolicyCache:
    return request.app.state.policy_cache


def get_config_resolver(request: Request) -> ConfigResolver:
    return request.app.state.config_resolver


async def extract_captcha_token(request: Request) -> str:
    """Find the captcha token in the header, a form field or a JSON body."""
    token = request.headers.get(TOKEN_HEADER, "")
    if token:
        return token

    content_type = request.headers.get("content-type", "")
    # Cache the raw body first so a failed form parse can still fall back to JSON
    body = await request.body()
    if content_type.startswith(_FORM_CONTENT_TYPES):
        try:
            form = await request.form()
        except (MultiPartException, HTTPException, ValueError):
            form = None
        if form is not None:
            for field in TOKEN_FORM_FIELDS:
                value = form.get(field)
                if isinstance(value, str) and value:
                    return value
            return ""

    if not body:
        return ""
    try:
        payload = json.loads(body)
    except ValueError:
        return ""
    if isinstance(payload, dict):
        value = payload.get("token")
        if isinstance(value, str):
            return value
    return ""


def require_captcha(
    action: str, *, failure_status: Optional[int] = None
) -> Callable[[Request], Awaitable[VerificationResult]]:
    """Build a dependency that verifies the request's captcha token for ``action``.

    ``failure_status`` overrides CAPTCHA_FAILURE_STATUS_CODE for this route.
    """

    async def dependency(request: Request) -> VerificationResult:
        settings = get_settings(request)
        status_code = failure_status or settings.captcha.captcha_failure_status_code

        token = await extract_captcha_token(request)
        if not token:
            raise CaptchaRejectedError(
                VerificationResult.failed(
                    VerificationStatus.TOKEN_MISSING, "missing captcha token"
                ),
                status_code=status_code,
            )

        result = await get_captcha_service(request).verify(
            token,
            get_client_ip(request),
            action,
            timeout=settings.captcha.captcha_request_timeout_seconds,
        )
        if not result.success:
            raise CaptchaRejectedError(result, status_code=status_code)
        return result

    return dependency
