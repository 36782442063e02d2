"""Short identifier generation and allocation.

Allocation Flow
===============
::
    ┌─────────────┐
    │ allocate()  │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ generate    │◄──────────┐
    │ candidate   │           │
    └──────┬──────┘           │
           ▼                  │
    ┌─────────────┐   TAKEN   │
    │ exists in   ├───────────┤ (attempt < max)
    │ store?      │           │
    └──────┬──────┘           │
      FREE │          reserved path segment
           ▼
    ┌─────────────┐
    │ return id   │
    └─────────────┘

Key Behaviours
===============
- Identifiers are drawn uniformly from the 62-character alphanumeric alphabet.
- Without an injected random source, ``nanoid`` supplies secure randomness.
- The existence check is an optimization. The unique index on
  ``links.short_id`` is what guarantees uniqueness; the link service retries
  allocation when an insert loses a race.
- After ``max_attempts`` taken candidates the allocator raises
  ``AllocationError``.

Classes:
    ShortIdGenerator:  Produces random candidate identifiers.
    ShortIdAllocator:  Finds a candidate that is not yet stored.
"""

import logging
import random
import string
from typing import Optional, Protocol

from nanoid import generate
from prometheus_client import Counter

from shortly.exceptions import AllocationError

__all__ = [
    "ALPHABET",
    "DEFAULT_SHORT_ID_LENGTH",
    "RESERVED_PATH_SEGMENTS",
    "ShortIdGenerator",
    "ShortIdAllocator",
]

ALPHABET = string.ascii_lowercase + string.ascii_uppercase + string.digits
DEFAULT_SHORT_ID_LENGTH = 6

# Top-level routes that a short path must never shadow.
RESERVED_PATH_SEGMENTS = frozenset({"links", "health", "metrics", "docs", "redoc", "openapi.json"})

SHORT_ID_COLLISIONS_TOTAL = Counter(
    "shortly_short_id_collisions_total",
    "Generated short identifiers rejected because they were already taken",
)
SHORT_ID_ALLOCATION_FAILURES_TOTAL = Counter(
    "shortly_short_id_allocation_failures_total",
    "Allocations that exhausted the retry cap",
)

logger = logging.getLogger("shortly")


class ShortIdLookup(Protocol):
    async def short_id_exists(self, short_id: str) -> bool: ...


class ShortIdGenerator:
    """Random fixed-length alphanumeric identifiers.

    Args:
        length: Default identifier length.
        rng: Optional ``random.Random`` compatible source. Tests inject a
            seeded instance; production leaves it unset.
    """

    def __init__(self, length: int = DEFAULT_SHORT_ID_LENGTH, rng: Optional[random.Random] = None):
        if length <= 0:
            raise ValueError(f"length must be a positive integer, got {length!r}")
        self.length = length
        self._rng = rng

    def generate(self, length: Optional[int] = None) -> str:
        length = self.length if length is None else length
        if length <= 0:
            raise ValueError(f"length must be a positive integer, got {length!r}")
        if self._rng is None:
            return generate(ALPHABET, length)
        return "".join(self._rng.choices(ALPHABET, k=length))


class ShortIdAllocator:
    """Finds a short identifier that is not present in the link store."""

    def __init__(self, store: ShortIdLookup, generator: ShortIdGenerator, max_attempts: int = 50):
        if max_attempts <= 0:
            raise ValueError(f"max_attempts must be a positive integer, got {max_attempts!r}")
        self._store = store
        self._generator = generator
        self.max_attempts = max_attempts

    async def allocate(self) -> str:
        for attempt in range(1, self.max_attempts + 1):
            candidate = self._generator.generate()
            if candidate.lower() in RESERVED_PATH_SEGMENTS:
                continue
            if not await self._store.short_id_exists(candidate):
                if attempt > 1:
                    logger.debug(f"Allocated short id after {attempt} attempts")
                return candidate
            SHORT_ID_COLLISIONS_TOTAL.inc()

        SHORT_ID_ALLOCATION_FAILURES_TOTAL.inc()
        logger.error(f"Short id allocation failed after {self.max_attempts} attempts")
        raise AllocationError(f"Could not allocate a short identifier after {self.max_attempts} attempts")
