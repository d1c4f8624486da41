"""
Captcha verification service.

Ties the policy store, the config resolver and a provider Verifier together:

    policy_error → config_error → verify_error
        → success_failed → action_mismatch → score_too_low → verified

verify() never raises for configuration, policy or provider trouble; every
failure becomes a VerificationResult status the HTTP layer can render as-is.
The last three checks run in exactly that order, so a provider-level failure
always wins over an action mismatch, which wins over a low score.

The provider is picked once, at construction, from the policy document. An
unknown or missing provider is a broken deployment and raises
CaptchaProviderError from create().
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from errors import (
    CaptchaProviderError,
    ConfigError,
    ConfigKeyNotFoundError,
    PolicyError,
    VerifierError,
)
from infrastructure.captcha.google import GoogleVerifier
from infrastructure.captcha.protocol import Verifier, VerifierResult
from infrastructure.captcha.turnstile import TurnstileVerifier
from infrastructure.http_client import HttpClient
from schemas.dto.responses.captcha import (
    ActionMetadata,
    VerificationResult,
    VerificationStatus,
)
from schemas.models.policy import Policy
from services.config_resolver import ConfigResolver
from services.policy_store import PolicyCache
from shared.logging import get_logger, hash_ip

log = get_logger(__name__)

VerifierFactory = Callable[[str, HttpClient], Verifier]

VERIFIERS: dict[str, VerifierFactory] = {
    "google": GoogleVerifier,
    "turnstile": TurnstileVerifier,
}


class CaptchaService:
    def __init__(
        self,
        policies: PolicyCache,
        resolver: ConfigResolver,
        http_client: HttpClient,
        provider: str,
    ) -> None:
        factory = VERIFIERS.get(provider.strip().lower())
        if factory is None:
            raise CaptchaProviderError(
                f"invalid captcha provider {provider!r} (turnstile|google)"
            )
        self._policies = policies
        self._resolver = resolver
        self._http = http_client
        self._factory = factory
        self.provider = provider.strip().lower()

    @classmethod
    async def create(
        cls,
        policies: PolicyCache,
        resolver: ConfigResolver,
        http_client: HttpClient,
    ) -> "CaptchaService":
        try:
            store = await policies.current()
        except PolicyError as e:
            raise CaptchaProviderError(f"failed to load captcha config: {e.message}") from e
        if not store.provider:
            raise CaptchaProviderError("captcha provider missing in policy config")
        service = cls(policies, resolver, http_client, store.provider)
        log.info("captcha_service_ready", provider=service.provider, path=store.path)
        return service

    async def verify(
        self,
        token: str,
        remote_ip: str,
        expected_action: str,
        *,
        timeout: Optional[float] = None,
    ) -> VerificationResult:
        """Check ``token`` against the policy for ``expected_action``.

        ``timeout`` bounds the whole attempt; expiry reports verify_error.
        Cancelling the calling task cancels the outbound request.
        """
        try:
            result = await asyncio.wait_for(
                self._verify(token, remote_ip, expected_action), timeout
            )
        except asyncio.TimeoutError:
            result = VerificationResult.failed(
                VerificationStatus.VERIFY_ERROR,
                f"verify error: deadline of {timeout}s exceeded",
            )

        event = "captcha_verified" if result.success else "captcha_rejected"
        log.info(
            event,
            action=expected_action,
            status=result.status,
            client_ip=hash_ip(remote_ip),
        )
        return result

    async def _verify(
        self, token: str, remote_ip: str, expected_action: str
    ) -> VerificationResult:
        try:
            store = await self._policies.current()
        except PolicyError as e:
            return VerificationResult.failed(
                VerificationStatus.POLICY_ERROR, f"failed to load policy: {e.message}"
            )

        policy, matched = store.policy_for(expected_action)
        if not matched:
            log.info(
                "captcha_policy_fallback",
                action=expected_action,
                min_score=policy.min_score,
            )

        try:
            verifier = await self._verifier_for(policy)
        except ConfigError as e:
            return VerificationResult.failed(
                VerificationStatus.CONFIG_ERROR, f"failed to load secret '{policy.secret_key}': {e.message}"
            )

        try:
            res = await verifier.verify(token, remote_ip)
        except VerifierError as e:
            return VerificationResult.failed(
                VerificationStatus.VERIFY_ERROR, f"verify error: {e.message}"
            )

        return self._judge(res, policy, expected_action)

    @staticmethod
    def _judge(res: VerifierResult, policy: Policy, expected_action: str) -> VerificationResult:
        if not res.success:
            return VerificationResult.failed(
                VerificationStatus.SUCCESS_FAILED,
                "captcha provider marked challenge as failed",
            )
        if res.action != expected_action:
            return VerificationResult.failed(
                VerificationStatus.ACTION_MISMATCH,
                f"captcha action mismatch: expected '{expected_action}', got '{res.action}'",
            )
        if res.score is not None and res.score < policy.min_score:
            return VerificationResult.failed(
                VerificationStatus.SCORE_TOO_LOW,
                f"captcha score too low: {res.score:.2f} < {policy.min_score:.2f}",
            )
        return VerificationResult(
            success=True,
            status=VerificationStatus.VERIFIED,
            message="captcha verification passed",
        )

    async def _verifier_for(self, policy: Policy) -> Verifier:
        if not policy.secret_key:
            raise ConfigKeyNotFoundError("secret_key", "policy declares no secret_key")
        secret = await self._resolver.get(policy.secret_key)
        return self._factory(secret, self._http)

    async def metadata(self, action: str) -> ActionMetadata:
        """Widget settings for ``action``; no provider call is made.

        Raises PolicyError when the policy store cannot be loaded.
        """
        store = await self._policies.current()
        policy, _ = store.policy_for(action)
        return ActionMetadata(
            action=action,
            site_key=policy.site_key,
            theme=policy.theme,
            appearance=policy.appearance,
        )
