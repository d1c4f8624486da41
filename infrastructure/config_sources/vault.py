"""HashiCorp Vault (KV v2) implementation of ConfigSource.

Talks to Vault's HTTP API directly through HttpClient:
- GET {VAULT_ADDR}/v1/{VAULT_PATH}/data/{key} with the X-Vault-Token header
- the secret's ``value`` field holds the configuration value
- a non-empty environment variable of the same name always wins, so single
  values can be overridden locally without touching Vault
"""

from __future__ import annotations

import os
from typing import Any, Optional

import httpx

from config import VaultSettings
from errors import ConfigKeyNotFoundError, MisconfiguredSourceError, RemoteSourceError
from infrastructure.http_client import HttpClient
from shared.logging import get_logger

log = get_logger(__name__)


class VaultSource:
    name = "vault"

    def __init__(
        self,
        settings: Optional[VaultSettings] = None,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        if settings is None:
            settings = VaultSettings()
        addr = settings.vault_addr.strip()
        token = settings.vault_token.strip()
        if not addr or not token:
            raise MisconfiguredSourceError(
                "vault config requires VAULT_ADDR and VAULT_TOKEN"
            )
        self._mount_path = settings.vault_path.strip().strip("/") or "secret"
        self._http = HttpClient(
            timeout=settings.vault_timeout_seconds,
            base_url=addr.rstrip("/"),
            headers={"X-Vault-Token": token},
            transport=transport,
        )

    @property
    def mount_path(self) -> str:
        return self._mount_path

    async def get(self, key: str) -> str:
        env_value = os.environ.get(key, "")
        if env_value:
            return env_value

        secret = await self._read(key)
        value = secret.get("value")
        if not isinstance(value, str) or not value:
            raise ConfigKeyNotFoundError(
                key, f"no 'value' field found in vault secret: {key}"
            )
        return value

    async def _read(self, key: str) -> dict[str, Any]:
        path = f"/v1/{self._mount_path}/data/{key.lstrip('/')}"
        try:
            response = await self._http.get(path)
        except httpx.HTTPError as e:
            log.error(
                "vault_request_failed",
                key=key,
                error=str(e),
                error_type=type(e).__name__,
            )
            raise RemoteSourceError(f"vault read error: {e}") from e

        if response.status_code != 200:
            log.warning(
                "vault_read_rejected",
                key=key,
                status_code=response.status_code,
            )
            raise RemoteSourceError(
                f"vault read error: status {response.status_code} for {key}",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise RemoteSourceError(f"vault read error: undecodable body for {key}") from e

        data = body.get("data") if isinstance(body, dict) else None
        secret = data.get("data") if isinstance(data, dict) else None
        if not isinstance(secret, dict):
            return {}
        return secret

    async def aclose(self) -> None:
        await self._http.aclose()
