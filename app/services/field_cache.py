"""Per-(project, issue type) cache of tracker field name -> field id."""

import asyncio
import logging
from collections.abc import Awaitable, Callable

logger = logging.getLogger(__name__)

FieldLoader = Callable[[str, str], Awaitable[dict[str, str]]]


class CustomFieldCache:
    """
    Field ids keyed by (project_key, issue_type).

    Each key is loaded at most once; concurrent readers of a key that is being
    loaded wait for that load instead of starting their own. A failed load
    leaves the key empty so the next reader retries.
    """

    def __init__(self, loader: FieldLoader) -> None:
        self._loader = loader
        self._entries: dict[tuple[str, str], dict[str, str]] = {}
        self._locks: dict[tuple[str, str], asyncio.Lock] = {}

    def _lock_for(self, key: tuple[str, str]) -> asyncio.Lock:
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def fields(self, project_key: str, issue_type: str) -> dict[str, str]:
        key = (project_key, issue_type)
        cached = self._entries.get(key)
        if cached is not None:
            return cached
        async with self._lock_for(key):
            cached = self._entries.get(key)
            if cached is None:
                cached = await self._loader(project_key, issue_type)
                self._entries[key] = cached
                logger.debug(
                    "Loaded %s tracker fields",
                    len(cached),
                    extra={"project_key": project_key, "issue_type": issue_type},
                )
            return cached

    async def field_id(self, project_key: str, issue_type: str, field_name: str) -> str | None:
        """Look up by display name; a raw field id (e.g. customfield_10010) is accepted too."""
        fields = await self.fields(project_key, issue_type)
        if field_name in fields:
            return fields[field_name]
        if field_name in fields.values():
            return field_name
        return None
