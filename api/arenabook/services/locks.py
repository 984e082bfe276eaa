"""Per-court serialization of validate-then-persist.

Two requests for overlapping slots on the same court must not both pass the
overlap check before either has written. Within one process this lock closes
that window; across processes the partial unique index on
bookings(court_id, start_time) is the backstop for identical starts.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

_court_locks: defaultdict[int, asyncio.Lock] = defaultdict(asyncio.Lock)


@asynccontextmanager
async def court_lock(court_id: int) -> AsyncIterator[None]:
    """Hold the court's lock for the duration of the block."""
    lock = _court_locks[court_id]
    async with lock:
        yield
