"""Process-environment implementation of ConfigSource."""

import os

from errors import ConfigKeyNotFoundError


class EnvSource:
    name = "env"

    async def get(self, key: str) -> str:
        value = os.environ.get(key, "")
        if not value:
            raise ConfigKeyNotFoundError(key, f"env {key} not set")
        return value

    async def aclose(self) -> None:
        return None
