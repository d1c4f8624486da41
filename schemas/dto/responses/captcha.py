"""
Response DTOs for captcha verification.

VerificationResult: outcome of CaptchaService.verify(); also the JSON body
    returned when require_captcha() rejects a request
ActionMetadata: GET /captcha/{action}; what a page needs to render the
    provider widget for one action
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class VerificationStatus(str, Enum):
    TOKEN_MISSING = "token_missing"
    POLICY_ERROR = "policy_error"
    CONFIG_ERROR = "config_error"
    VERIFY_ERROR = "verify_error"
    SUCCESS_FAILED = "success_failed"
    ACTION_MISMATCH = "action_mismatch"
    SCORE_TOO_LOW = "score_too_low"
    VERIFIED = "verified"


class VerificationResult(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    success: bool
    status: VerificationStatus
    message: str

    @classmethod
    def failed(cls, status: VerificationStatus, message: str) -> "VerificationResult":
        return cls(success=False, status=status, message=message)


class ActionMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    action: str
    site_key: str
    theme: str = ""
    appearance: str = ""
