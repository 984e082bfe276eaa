"""Persist the default weekly window on courts stored without one.

Run with: python -m scripts.fix_availability
Safe to re-run; a second pass changes nothing.
"""

import asyncio

from arenabook.core.database import async_session_factory
from arenabook.services.availability import fix_court_availability


async def main():
    async with async_session_factory() as db:
        changed = await fix_court_availability(db)
        await db.commit()
    print(f"Availability normalized on {changed} courts")


if __name__ == "__main__":
    asyncio.run(main())
