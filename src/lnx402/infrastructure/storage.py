"""Storage abstractions and Redis implementation for repositories."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, List, Optional

from redis.exceptions import NoScriptError

from .database import DatabaseClient
from .scripts import FACILITATOR_SCRIPTS


class KeyValueStore(ABC):
    """Abstract key-value store with minimal operations used by repositories."""

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        pass

    @abstractmethod
    async def zrevrange(self, key: str, start: int, end: int) -> list[str]:
        pass

    @abstractmethod
    async def register_script(self, name: str, script: str) -> str:
        """Register a named script, returning its handle."""
        pass

    @abstractmethod
    async def run_script(self, name: str, keys: List[str], args: List[str]) -> Any:
        """Atomically execute a registered script."""
        pass


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed implementation of KeyValueStore."""

    def __init__(self, db_client: DatabaseClient):
        self._db_client = db_client
        self._script_shas: dict[str, str] = {}

    async def get(self, key: str) -> Optional[str]:
        async with self._db_client.get_connection() as conn:
            return await conn.get(key)

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        if not keys:
            return []
        async with self._db_client.get_connection() as conn:
            return await conn.mget(keys)

    async def zrevrange(self, key: str, start: int, end: int) -> list[str]:
        async with self._db_client.get_connection() as conn:
            return await conn.zrevrange(key, start, end)

    async def register_script(self, name: str, script: str) -> str:
        async with self._db_client.get_connection() as conn:
            sha = await conn.script_load(script)
        self._script_shas[name] = sha
        return sha

    async def run_script(self, name: str, keys: List[str], args: List[str]) -> Any:
        if name not in FACILITATOR_SCRIPTS:
            raise ValueError(f"Script '{name}' not registered")
        sha = self._script_shas.get(name)
        if sha is None:
            sha = await self.register_script(name, FACILITATOR_SCRIPTS[name])
        async with self._db_client.get_connection() as conn:
            try:
                return await conn.evalsha(sha, len(keys), *keys, *args)
            except NoScriptError:
                # Script cache flushed on the server (restart, SCRIPT FLUSH)
                sha = await conn.script_load(FACILITATOR_SCRIPTS[name])
                self._script_shas[name] = sha
                return await conn.evalsha(sha, len(keys), *keys, *args)
