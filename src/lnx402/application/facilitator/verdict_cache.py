"""Bounded in-process cache of positive verification verdicts.

Settlement may reuse a verdict instead of querying the backend again, as long
as the verdict is fresh and was reached on the exact same inputs.
"""

from __future__ import annotations

import hashlib
import threading
import time
from collections import OrderedDict
from typing import Callable, Optional

from ...domain.facilitator.entities import (
    PaymentRequirements,
    VerificationOutcome,
    XPaymentHeader,
)


def verdict_fingerprint(requirements: PaymentRequirements, header: XPaymentHeader) -> str:
    """Stable digest of the inputs a verdict was computed from."""
    material = (
        requirements.model_dump_json(by_alias=True)
        + "\n"
        + header.model_dump_json(by_alias=True)
    )
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


class VerdictCache:
    """Oldest-first evicting map of fingerprint -> (outcome, stored_at)."""

    def __init__(
        self,
        max_entries: int = 10_000,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[VerificationOutcome, float]] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, fingerprint: str, outcome: VerificationOutcome) -> None:
        if not outcome.result.is_valid or self._max_entries <= 0:
            return
        with self._lock:
            self._entries.pop(fingerprint, None)
            self._entries[fingerprint] = (outcome, self._clock())
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def get(self, fingerprint: str, max_age_seconds: float) -> Optional[VerificationOutcome]:
        with self._lock:
            entry = self._entries.get(fingerprint)
            if entry is None:
                return None
            outcome, stored_at = entry
            if self._clock() - stored_at > max_age_seconds:
                del self._entries[fingerprint]
                return None
            return outcome

    def discard(self, fingerprint: str) -> None:
        with self._lock:
            self._entries.pop(fingerprint, None)

    def __len__(self) -> int:
        return len(self._entries)
