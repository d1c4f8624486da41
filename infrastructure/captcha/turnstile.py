"""Cloudflare Turnstile implementation of Verifier.

Turnstile answers carry no score, so results always report ``score=None``
and the service never applies a score floor to them.
"""

from infrastructure.captcha.siteverify import SiteVerifyProvider


class TurnstileVerifier(SiteVerifyProvider):
    VERIFY_URL = "https://challenges.cloudflare.com/turnstile/v0/siteverify"
    PROVIDER = "turnstile"
