"""
Captcha policy models.

PolicyFragment / PolicyDocument mirror the JSON document on disk, where every
fragment field may be absent. Policy is the merged, immutable result used at
verification time.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

DEFAULT_MIN_SCORE = 0.5


@dataclass(frozen=True)
class Policy:
    min_score: float = DEFAULT_MIN_SCORE
    site_key: str = ""
    secret_key: str = ""
    theme: str = ""
    appearance: str = ""


class PolicyFragment(BaseModel):
    model_config = ConfigDict(extra="ignore")

    min_score: Optional[float] = None
    site_key: str = ""
    secret_key: str = ""
    theme: str = ""
    appearance: str = ""

    @field_validator("site_key", "secret_key", "theme", "appearance", mode="before")
    @classmethod
    def _strip(cls, v):
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v

    def overlay(self, base: Policy) -> Policy:
        """Return ``base`` with every field this fragment sets replaced."""
        return Policy(
            min_score=self.min_score if self.min_score is not None else base.min_score,
            site_key=self.site_key or base.site_key,
            secret_key=self.secret_key or base.secret_key,
            theme=self.theme or base.theme,
            appearance=self.appearance or base.appearance,
        )


class PolicyDocument(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    provider: str = ""
    global_: PolicyFragment = Field(default_factory=PolicyFragment, alias="global")
    actions: dict[str, Optional[PolicyFragment]] = Field(default_factory=dict)

    @field_validator("provider", mode="before")
    @classmethod
    def _strip_provider(cls, v):
        if v is None:
            return ""
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("global_", mode="before")
    @classmethod
    def _null_global(cls, v):
        return {} if v is None else v

    @field_validator("actions", mode="before")
    @classmethod
    def _null_actions(cls, v):
        return {} if v is None else v
