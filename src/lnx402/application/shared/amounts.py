"""Amount conversion policy between sats and milli-sats.

One policy for every call site: what a client *paid* is floored to whole
sats before comparison, so a fractional sat never counts towards the price.
What a client *owes* is maxAmountRequired, which is already whole sats.
"""

from __future__ import annotations

MSAT_PER_SAT = 1000
MAX_SATS = 21_000_000 * 100_000_000


def msat_to_sat_floor(amount_msat: int) -> int:
    """Sats credited for a paid amount."""
    return amount_msat // MSAT_PER_SAT


def covers(paid_msat: int, required_sat: int) -> bool:
    """True when a paid milli-sat amount satisfies a required sat amount."""
    return msat_to_sat_floor(paid_msat) >= required_sat
