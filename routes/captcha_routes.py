"""
Captcha widget metadata.

GET /captcha/{action}: site key and widget styling for one action, used by
pages that render the provider widget. Undeclared actions get the global
policy's values. No provider call is made.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from dependencies import get_captcha_service
from schemas.dto.responses.captcha import ActionMetadata
from services.captcha_service import CaptchaService

router = APIRouter(prefix="/captcha", tags=["captcha"])


@router.get("/{action}", response_model=ActionMetadata)
async def action_metadata(
    action: str, service: CaptchaService = Depends(get_captcha_service)
) -> ActionMetadata:
    return await service.metadata(action)
