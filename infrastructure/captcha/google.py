"""Google reCAPTCHA (v3-style, scored) implementation of Verifier."""

from __future__ import annotations

from typing import Any, Optional

from infrastructure.captcha.siteverify import SiteVerifyProvider


class GoogleVerifier(SiteVerifyProvider):
    VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
    PROVIDER = "google"

    def _score(self, data: dict[str, Any]) -> Optional[float]:
        # Always reported; an omitted score reads as 0.0
        score = data.get("score")
        if score is None:
            return 0.0
        # bool is an int subclass; float(True) would pass as a perfect score
        if isinstance(score, bool):
            raise TypeError(f"score must be a number, got {score!r}")
        return float(score)
