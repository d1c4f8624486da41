"""
Application configuration via pydantic-settings.

All settings are loaded from environment variables (and .env file).

The captcha policy document path (CAPTCHA_CONFIG) and per-action secret keys
are deliberately not settings: they are resolved at runtime through the
ConfigResolver so they can live in Vault as well as in the environment.
"""

from __future__ import annotations

from typing import Optional

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigProviderSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # "env" or "vault"; normalised by the resolver
    config_provider: str = "env"


class VaultSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    vault_addr: str = ""
    vault_token: str = ""
    vault_path: str = "secret"
    vault_timeout_seconds: float = 5.0


class CaptchaSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Upper bound for a single siteverify call
    captcha_verify_timeout_seconds: float = 5.0
    # Deadline for the whole verification attempt made by require_captcha()
    captcha_request_timeout_seconds: float = 6.0
    captcha_failure_status_code: int = 400


class LoggingSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    log_level: str = "INFO"
    log_format: str = "console"  # "json" in production


class SentrySettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    sentry_dsn: str = ""
    sentry_send_pii: bool = False
    sentry_traces_sample_rate: float = 0.1


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    env: str = "development"
    app_name: str = "captcha-gate"

    # OpenAPI docs URL (None disables the docs UI in production)
    docs_url: Optional[str] = "/docs"

    # Sub-configs (composed via model_validator below)
    config_source: Optional[ConfigProviderSettings] = None
    vault: Optional[VaultSettings] = None
    captcha: Optional[CaptchaSettings] = None
    logging: Optional[LoggingSettings] = None
    sentry: Optional[SentrySettings] = None

    @model_validator(mode="after")
    def _populate_sub_configs(self) -> "AppSettings":
        if self.config_source is None:
            self.config_source = ConfigProviderSettings()
        if self.vault is None:
            self.vault = VaultSettings()
        if self.captcha is None:
            self.captcha = CaptchaSettings()
        if self.logging is None:
            self.logging = LoggingSettings()
        if self.sentry is None:
            self.sentry = SentrySettings()
        return self

    @property
    def is_production(self) -> bool:
        return self.env == "production"
