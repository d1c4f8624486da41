"""
Configuration resolver: one ConfigSource per process, chosen on first use.

CONFIG_PROVIDER (trimmed, case-insensitive, default "env") selects the source.
The selection runs at most once per resolver: concurrent first callers block
on the init lock and then observe the same outcome, and a failed selection is
cached and re-raised to every later caller without retrying.

create_app builds one resolver and stores it on app.state; tests build fresh
instances so no selection leaks between them.
"""

from __future__ import annotations

import threading
from typing import Callable, Optional

from config import ConfigProviderSettings
from errors import (
    ConfigError,
    FatalConfigError,
    MisconfiguredSourceError,
    UnknownConfigProviderError,
)
from infrastructure.config_sources.env import EnvSource
from infrastructure.config_sources.protocol import ConfigSource
from infrastructure.config_sources.vault import VaultSource
from shared.logging import get_logger

log = get_logger(__name__)

SOURCE_FACTORIES: dict[str, Callable[[], ConfigSource]] = {
    "env": EnvSource,
    "vault": VaultSource,
}


class ConfigResolver:
    def __init__(
        self,
        settings: Optional[ConfigProviderSettings] = None,
        *,
        factories: Optional[dict[str, Callable[[], ConfigSource]]] = None,
    ) -> None:
        self._settings = settings
        self._factories = factories if factories is not None else SOURCE_FACTORIES
        self._init_lock = threading.Lock()
        self._initialized = False
        self._source: Optional[ConfigSource] = None
        self._error: Optional[ConfigError] = None

    def source(self) -> ConfigSource:
        """Return the active source, selecting it on the first call."""
        if not self._initialized:
            with self._init_lock:
                if not self._initialized:
                    try:
                        self._select()
                    finally:
                        self._initialized = True
        if self._error is not None:
            raise self._error
        return self._source

    def _select(self) -> None:
        name = "env"
        try:
            settings = self._settings or ConfigProviderSettings()
            name = settings.config_provider.strip().lower() or "env"
            factory = self._factories.get(name)
            if factory is None:
                self._error = UnknownConfigProviderError(f"unknown config provider: {name}")
                log.error("config_source_unknown", provider=name)
                return
            self._source = factory()
        except ConfigError as e:
            self._error = e
        except Exception as e:
            # Unparseable settings (e.g. a non-numeric VAULT_TIMEOUT_SECONDS) and
            # other construction failures are cached like any ConfigError
            error = MisconfiguredSourceError(f"{name} config source failed to initialise: {e}")
            error.__cause__ = e
            self._error = error
        if self._error is not None:
            log.error("config_source_init_failed", provider=name, error=self._error.message)
            return
        log.info("config_source_selected", provider=name)

    async def get(self, key: str) -> str:
        return await self.source().get(key)

    async def get_or_default(self, key: str, fallback: str) -> str:
        try:
            value = await self.get(key)
        except ConfigError:
            return fallback
        return value or fallback

    async def must_get(self, key: str) -> str:
        """Resolve a key whose absence means the deployment is broken.

        Never call this on a request path.
        """
        try:
            return await self.get(key)
        except ConfigError as e:
            log.critical("config_required_key_missing", key=key, error=e.message)
            raise FatalConfigError(f"required config {key!r} unavailable: {e.message}") from e

    async def aclose(self) -> None:
        if self._source is not None:
            await self._source.aclose()
