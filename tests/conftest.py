"""
Shared test configuration.

Patches dotenv so pydantic-settings never reads the project's real .env file
during tests, and clears every environment variable the captcha stack reads.
Tests control config exclusively through monkeypatch.setenv().
"""

import json
import os

import pytest

CAPTCHA_ENV_VARS = (
    "CONFIG_PROVIDER",
    "CAPTCHA_CONFIG",
    "VAULT_ADDR",
    "VAULT_TOKEN",
    "VAULT_PATH",
    "SECRET",
    "CAPTCHA_SECRET",
    "ENV",
    "SENTRY_DSN",
)

LOGIN_POLICY = {
    "provider": "google",
    "global": {"min_score": 0.5, "site_key": "sk", "secret_key": "SECRET"},
    "actions": {"login": {}},
}


@pytest.fixture(autouse=True)
def disable_dotenv_loading(monkeypatch):
    """Prevent pydantic-settings from loading .env files in all tests."""
    import pydantic_settings.sources.providers.dotenv as ps_dotenv

    monkeypatch.setattr(ps_dotenv, "dotenv_values", lambda *a, **kw: {})


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for var in CAPTCHA_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    return monkeypatch


def write_policy(path, document, mtime_ns=None):
    """Write a policy document; optionally pin its modification time."""
    text = document if isinstance(document, str) else json.dumps(document)
    path.write_text(text)
    if mtime_ns is not None:
        os.utime(path, ns=(mtime_ns, mtime_ns))
    return path


@pytest.fixture
def policy_path(tmp_path, monkeypatch):
    """LOGIN_POLICY on disk, with CAPTCHA_CONFIG and SECRET set."""
    path = write_policy(tmp_path / "captcha.json", LOGIN_POLICY, mtime_ns=1_000_000_000)
    monkeypatch.setenv("CAPTCHA_CONFIG", str(path))
    monkeypatch.setenv("SECRET", "real-secret")
    return path


@pytest.fixture
def login_policy():
    return json.loads(json.dumps(LOGIN_POLICY))


@pytest.fixture
def policy_writer():
    return write_policy
