"""Shared siteverify request/decode flow for reCAPTCHA-style providers.

Google reCAPTCHA and Cloudflare Turnstile speak the same protocol: a
form-encoded POST of {secret, response, remoteip?} answered by a JSON object
with ``success``, ``action`` and ``error-codes`` (plus ``score`` for Google).
Subclasses set VERIFY_URL and PROVIDER and decide how to read the score.

Transport failures, timeouts and undecodable bodies raise VerifierError; a
well-formed ``success: false`` answer is returned as a result, not raised.
HttpClient bounds each connect/read/write phase; the whole call, body
included, is also bounded by ``total_timeout`` so a provider trickling bytes
cannot hold the request open.
"""

from __future__ import annotations

import asyncio
from typing import Any, Optional

import httpx

from errors import VerifierError
from infrastructure.captcha.protocol import VerifierResult
from infrastructure.http_client import HttpClient
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)


class SiteVerifyProvider:
    VERIFY_URL: str = ""
    PROVIDER: str = ""

    def __init__(self, secret: str, http_client: HttpClient) -> None:
        self._secret = secret
        self._http = http_client

    def _score(self, data: dict[str, Any]) -> Optional[float]:
        return None

    async def verify(self, token: str, remote_ip: str = "") -> VerifierResult:
        form = {"secret": self._secret, "response": token}
        if remote_ip:
            form["remoteip"] = remote_ip

        try:
            response = await asyncio.wait_for(
                self._http.post(self.VERIFY_URL, data=form),
                self._http.total_timeout,
            )
        except (asyncio.TimeoutError, httpx.TimeoutException) as e:
            log.error(
                "captcha_provider_timeout",
                provider=self.PROVIDER,
                client_ip=hash_ip(remote_ip),
            )
            raise VerifierError(f"{self.PROVIDER} verify timed out") from e
        except httpx.HTTPError as e:
            log.error(
                "captcha_provider_request_failed",
                provider=self.PROVIDER,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise VerifierError(f"{self.PROVIDER} request error: {e}") from e

        if response.status_code != 200:
            log.warning(
                "captcha_provider_http_status",
                provider=self.PROVIDER,
                status_code=response.status_code,
                response_text=response.text[:200],
            )

        try:
            data = response.json()
        except ValueError as e:
            raise VerifierError(f"{self.PROVIDER} decode error: {e}") from e
        if not isinstance(data, dict):
            raise VerifierError(f"{self.PROVIDER} decode error: expected a JSON object")

        try:
            return VerifierResult(
                success=data.get("success") is True,
                action=str(data.get("action") or ""),
                score=self._score(data),
                error_codes=tuple(str(code) for code in data.get("error-codes") or ()),
            )
        except (TypeError, ValueError) as e:
            raise VerifierError(f"{self.PROVIDER} decode error: {e}") from e
