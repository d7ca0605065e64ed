"""Management CLI.

Usage:
    python -m herbtrace.cli create-tables      # Create any missing tables
    python -m herbtrace.cli pending <stage>    # Lots waiting on a workflow stage
"""

import asyncio
import sys

from herbtrace.database import async_session, create_tables, engine
from herbtrace.models.lot import STAGE_ORDER, Stage
from herbtrace.services.workflow import pending_for


async def _create_tables():
    await create_tables()
    await engine.dispose()
    print("Tables created.")


async def _pending(stage: Stage):
    count = 0
    async with async_session() as db:
        async for lot in pending_for(db, stage):
            count += 1
            print(f"  {lot.batch_code}  {lot.species} ({lot.variety})  {lot.status}")
    await engine.dispose()
    print(f"\n{count} lot(s) pending {stage.value}")


def _usage():
    stages = "|".join(s.value for s in STAGE_ORDER)
    print(f"Usage: python -m herbtrace.cli [create-tables|pending <{stages}>]")


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "create-tables":
        asyncio.run(_create_tables())
    elif cmd == "pending" and len(sys.argv) > 2:
        try:
            stage = Stage(sys.argv[2])
        except ValueError:
            _usage()
            sys.exit(2)
        asyncio.run(_pending(stage))
    else:
        _usage()
