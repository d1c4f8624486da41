"""Unit tests for shared logging helpers, settings and the error hierarchy."""

import pytest

import shared.logging as shared_logging
from config import AppSettings, CaptchaSettings, ConfigProviderSettings, VaultSettings
from errors import (
    AppError,
    CaptchaRejectedError,
    ConfigError,
    ConfigKeyNotFoundError,
    FatalConfigError,
    InvalidPolicyDocumentError,
    PolicyError,
    RemoteSourceError,
)
from schemas.dto.responses.captcha import VerificationResult, VerificationStatus
from shared.logging import hash_ip, redact_sensitive_fields


class TestRedaction:
    def test_redacts_secrets_and_tokens(self):
        event = {
            "event": "captcha_rejected",
            "secret": "s",
            "captcha_token": "t",
            "vault_token": "v",
            "action": "login",
            "key": "CAPTCHA_SECRET",
        }
        out = redact_sensitive_fields(None, "info", event)
        assert out["secret"] == "***REDACTED***"
        assert out["captcha_token"] == "***REDACTED***"
        assert out["vault_token"] == "***REDACTED***"
        assert out["action"] == "login"
        assert out["key"] == "CAPTCHA_SECRET"
        assert out["event"] == "captcha_rejected"


class TestHashIp:
    def test_passthrough_in_development(self, monkeypatch):
        monkeypatch.setattr(shared_logging, "_hash_ips", False)
        assert hash_ip("203.0.113.7") == "203.0.113.7"

    def test_hashed_in_production(self, monkeypatch):
        monkeypatch.setattr(shared_logging, "_hash_ips", True)
        hashed = hash_ip("203.0.113.7")
        assert hashed != "203.0.113.7"
        assert len(hashed) == 16

    def test_empty_stays_empty(self, monkeypatch):
        monkeypatch.setattr(shared_logging, "_hash_ips", True)
        assert hash_ip("") == ""


class TestSettings:
    def test_defaults(self):
        settings = AppSettings()
        assert settings.config_source.config_provider == "env"
        assert settings.vault.vault_path == "secret"
        assert settings.captcha.captcha_verify_timeout_seconds == 5.0
        assert settings.captcha.captcha_request_timeout_seconds == 6.0
        assert settings.captcha.captcha_failure_status_code == 400
        assert settings.is_production is False

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CONFIG_PROVIDER", "vault")
        monkeypatch.setenv("VAULT_PATH", "kv")
        monkeypatch.setenv("CAPTCHA_FAILURE_STATUS_CODE", "403")
        assert ConfigProviderSettings().config_provider == "vault"
        assert VaultSettings().vault_path == "kv"
        assert CaptchaSettings().captcha_failure_status_code == 403

    def test_app_settings_with_vault_provider(self, monkeypatch):
        monkeypatch.setenv("CONFIG_PROVIDER", "vault")
        monkeypatch.setenv("VAULT_ADDR", "http://vault:8200")
        settings = AppSettings()
        assert settings.config_source.config_provider == "vault"
        assert settings.vault.vault_addr == "http://vault:8200"


class TestErrors:
    def test_hierarchy(self):
        assert issubclass(ConfigKeyNotFoundError, ConfigError)
        assert issubclass(RemoteSourceError, ConfigError)
        assert issubclass(InvalidPolicyDocumentError, PolicyError)
        assert issubclass(FatalConfigError, AppError)
        assert not issubclass(FatalConfigError, ConfigError)

    def test_to_dict(self):
        err = RemoteSourceError("vault down", details={"status_code": 503})
        assert err.to_dict() == {
            "error": "vault down",
            "code": "config_source_unavailable",
            "details": {"status_code": 503},
        }

    def test_rejection_renders_result(self):
        result = VerificationResult.failed(VerificationStatus.SCORE_TOO_LOW, "too low")
        err = CaptchaRejectedError(result, status_code=403)
        assert err.status_code == 403
        assert err.to_dict() == {
            "success": False,
            "status": "score_too_low",
            "message": "too low",
        }

    @pytest.mark.parametrize("key", ["A", "CAPTCHA_SECRET"])
    def test_not_found_carries_key(self, key):
        assert ConfigKeyNotFoundError(key).key == key
