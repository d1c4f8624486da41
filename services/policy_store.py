"""
Captcha policy store.

PolicyStore is an immutable snapshot of one parsed policy document: the merged
global policy, the merged per-action policies and the declared provider.

PolicyCache owns the live snapshot. current() resolves CAPTCHA_CONFIG through
the ConfigResolver, stats the file and, only when the path or modification
time differs from the cached snapshot, reads and parses it again. The
check-read-install sequence runs under one asyncio.Lock so concurrent callers
never reload redundantly or observe a half-built store. A document that fails
to parse leaves the previous snapshot installed; every later call retries.

File I/O runs in asyncio.to_thread() to keep the event loop free.
"""

from __future__ import annotations

import asyncio
import json
import os
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import ValidationError

from errors import (
    ConfigError,
    ConfigKeyNotFoundError,
    InvalidPolicyDocumentError,
    MissingPolicyPathError,
    PolicyFileUnreadableError,
)
from schemas.models.policy import Policy, PolicyDocument
from services.config_resolver import ConfigResolver
from shared.logging import get_logger

log = get_logger(__name__)

POLICY_PATH_KEY = "CAPTCHA_CONFIG"


class PolicyStore:
    def __init__(
        self,
        global_policy: Policy,
        actions: Mapping[str, Policy],
        provider: str,
        path: str = "",
        modified_ns: int = 0,
    ) -> None:
        self._global = global_policy
        self._actions = MappingProxyType(dict(actions))
        self._provider = provider
        self.path = path
        self.modified_ns = modified_ns

    @property
    def provider(self) -> str:
        return self._provider

    @property
    def global_policy(self) -> Policy:
        return self._global

    @property
    def actions(self) -> Mapping[str, Policy]:
        return self._actions

    def policy_for(self, action: str) -> tuple[Policy, bool]:
        """Return the action's policy, or the global policy and False if undeclared."""
        policy = self._actions.get(action)
        if policy is not None:
            return policy, True
        return self._global, False


def _reject_duplicate_keys(pairs: list[tuple[str, Any]]) -> dict[str, Any]:
    result: dict[str, Any] = {}
    for key, value in pairs:
        if key in result:
            raise InvalidPolicyDocumentError(f"duplicate key in captcha policy: {key!r}")
        result[key] = value
    return result


def build_policy_store(data: bytes | str, path: str = "", modified_ns: int = 0) -> PolicyStore:
    """Parse, merge and validate a policy document.

    Raises InvalidPolicyDocumentError on malformed JSON, a blank provider, no
    actions, a blank action name, or any merged policy without a site key.
    """
    try:
        raw = json.loads(data, object_pairs_hook=_reject_duplicate_keys)
    except ValueError as e:
        raise InvalidPolicyDocumentError(f"could not parse captcha policy config: {e}") from e
    if not isinstance(raw, dict):
        raise InvalidPolicyDocumentError("captcha policy config must be a JSON object")

    try:
        doc = PolicyDocument.model_validate(raw)
    except ValidationError as e:
        raise InvalidPolicyDocumentError(
            "could not parse captcha policy config",
            details=e.errors(include_url=False, include_context=False),
        ) from e

    if not doc.provider:
        raise InvalidPolicyDocumentError("captcha policy requires provider")
    if not doc.actions:
        raise InvalidPolicyDocumentError("captcha policy requires at least one action")

    base = doc.global_.overlay(Policy())
    actions: dict[str, Policy] = {}
    for name, fragment in doc.actions.items():
        if not name.strip():
            raise InvalidPolicyDocumentError("captcha policy action name cannot be empty")
        actions[name] = fragment.overlay(base) if fragment is not None else base

    # global is also the fallback for undeclared actions: it needs a site key too
    missing = [name for name, policy in actions.items() if not policy.site_key]
    if not base.site_key or missing:
        raise InvalidPolicyDocumentError(
            "captcha policy requires a site_key in global or for every action",
            details={"actions_missing_site_key": missing} if missing else None,
        )

    return PolicyStore(
        global_policy=base,
        actions=actions,
        provider=doc.provider,
        path=path,
        modified_ns=modified_ns,
    )


def _read_policy_file(path: str) -> bytes:
    with open(path, "rb") as fh:
        return fh.read()


class PolicyCache:
    def __init__(self, resolver: ConfigResolver) -> None:
        self._resolver = resolver
        self._lock = asyncio.Lock()
        self._store: Optional[PolicyStore] = None
        self.reloads = 0

    @property
    def cached(self) -> Optional[PolicyStore]:
        return self._store

    async def _resolve_path(self) -> str:
        try:
            path = await self._resolver.get(POLICY_PATH_KEY)
        except ConfigKeyNotFoundError as e:
            raise MissingPolicyPathError(f"{POLICY_PATH_KEY} must be set") from e
        except ConfigError as e:
            raise MissingPolicyPathError(
                f"could not resolve {POLICY_PATH_KEY}: {e.message}"
            ) from e
        path = path.strip()
        if not path:
            raise MissingPolicyPathError(f"{POLICY_PATH_KEY} must be set")
        return path

    async def current(self) -> PolicyStore:
        """Return the live policy store, reloading only when the file changed."""
        path = await self._resolve_path()
        try:
            stat = await asyncio.to_thread(os.stat, path)
        except OSError as e:
            raise PolicyFileUnreadableError(
                f"could not stat captcha policy config ({path}): {e}"
            ) from e

        async with self._lock:
            store = self._store
            if store is not None and store.path == path and store.modified_ns == stat.st_mtime_ns:
                return store

            try:
                data = await asyncio.to_thread(_read_policy_file, path)
            except OSError as e:
                raise PolicyFileUnreadableError(
                    f"could not open captcha policy config ({path}): {e}"
                ) from e

            try:
                store = build_policy_store(data, path=path, modified_ns=stat.st_mtime_ns)
            except InvalidPolicyDocumentError as e:
                log.error("captcha_policy_invalid", path=path, error=e.message)
                raise

            self._store = store
            self.reloads += 1
            log.info(
                "captcha_policy_reloaded",
                path=path,
                provider=store.provider,
                actions=len(store.actions),
            )
            return store
