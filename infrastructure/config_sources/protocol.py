"""ConfigSource protocol: the resolver depends on this, not the concrete backends."""

from typing import Protocol


class ConfigSource(Protocol):
    name: str

    async def get(self, key: str) -> str:
        """Return the non-empty value for ``key``.

        Raises ConfigKeyNotFoundError when the key is unknown or empty, and
        RemoteSourceError when a remote backend cannot be reached.
        """
        ...

    async def aclose(self) -> None: ...
