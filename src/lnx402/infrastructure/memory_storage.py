"""In-process implementation of KeyValueStore for single-process deployments."""

from __future__ import annotations

import heapq
import threading
import time
from typing import Any, Callable, List, Optional

from .scripts import CONSUME_ALREADY_PRESENT, CONSUME_INSERTED, FACILITATOR_SCRIPTS
from .storage import KeyValueStore


class InMemoryKeyValueStore(KeyValueStore):
    """Mutex-guarded map. Named scripts run as Python under the same lock."""

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._data: dict[str, str] = {}
        self._expires_at: dict[str, float] = {}
        self._sorted_sets: dict[str, dict[str, float]] = {}
        self._deadlines: list[tuple[float, str]] = []
        self._scripts: dict[str, Callable[[List[str], List[str]], Any]] = {
            "consume_settlement": self._consume_settlement,
        }
        self._registered: set[str] = set()

    def _expire(self, key: str) -> None:
        self._data.pop(key, None)
        self._expires_at.pop(key, None)
        for members in self._sorted_sets.values():
            members.pop(key, None)

    def _live_value(self, key: str) -> Optional[str]:
        deadline = self._expires_at.get(key)
        if deadline is not None and self._clock() >= deadline:
            self._expire(key)
        return self._data.get(key)

    def _prune_expired(self) -> None:
        now = self._clock()
        while self._deadlines and self._deadlines[0][0] <= now:
            deadline, key = heapq.heappop(self._deadlines)
            # Stale entry: the key was already expired or written again
            if self._expires_at.get(key) == deadline:
                self._expire(key)

    async def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._live_value(key)

    async def mget(self, keys: List[str]) -> List[Optional[str]]:
        with self._lock:
            return [self._live_value(key) for key in keys]

    async def zrevrange(self, key: str, start: int, end: int) -> list[str]:
        with self._lock:
            members = sorted(
                self._sorted_sets.get(key, {}).items(),
                key=lambda item: item[1],
                reverse=True,
            )
        # Redis ranges are inclusive; -1 means through the end
        slice_end = None if end == -1 else end + 1
        return [member for member, _ in members[start:slice_end]]

    async def register_script(self, name: str, script: str) -> str:
        if name not in self._scripts:
            raise NotImplementedError(f"Script '{name}' has no in-memory implementation")
        self._registered.add(name)
        return f"memory:{name}"

    async def run_script(self, name: str, keys: List[str], args: List[str]) -> Any:
        if name not in self._registered:
            if name not in FACILITATOR_SCRIPTS:
                raise ValueError(f"Script '{name}' not registered")
            await self.register_script(name, FACILITATOR_SCRIPTS[name])
        with self._lock:
            return self._scripts[name](keys, args)

    def _consume_settlement(self, keys: List[str], args: List[str]) -> list[Any]:
        # Deadlines come from this store's clock, so the expiry index key is unused
        record_key, index_key = keys[0], keys[1]
        record, score, ttl = args[0], float(args[1]), int(args[2])

        self._prune_expired()
        existing = self._live_value(record_key)
        if existing is not None:
            return [CONSUME_ALREADY_PRESENT, existing]

        self._data[record_key] = record
        if ttl > 0:
            deadline = self._clock() + ttl
            self._expires_at[record_key] = deadline
            heapq.heappush(self._deadlines, (deadline, record_key))
        self._sorted_sets.setdefault(index_key, {})[record_key] = score
        return [CONSUME_INSERTED, record]

    def clear(self) -> None:
        with self._lock:
            self._data.clear()
            self._expires_at.clear()
            self._sorted_sets.clear()
            self._deadlines.clear()
