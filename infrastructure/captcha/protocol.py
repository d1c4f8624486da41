"""Verifier protocol: the captcha service depends on this, not the concrete providers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class VerifierResult:
    """A provider's siteverify answer, normalised across providers.

    ``score`` is None when the provider protocol carries no score at all;
    0.0 is a real (very low) score.
    """

    success: bool
    action: str = ""
    score: Optional[float] = None
    error_codes: tuple[str, ...] = ()


class Verifier(Protocol):
    async def verify(self, token: str, remote_ip: str = "") -> VerifierResult: ...
