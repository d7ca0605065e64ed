"""Workflow engine — gates each lot's four-stage progression.

Stages are ordered  farmer < lab_technician < processor < manager  and each
one is a monotonic incomplete → complete flag.  A stage may only be marked
complete once every earlier stage is complete; anything else raises
PrecursorIncompleteError naming the first missing stage.

Legality is decided against the store, never against in-memory state:

  * ensure_stage_ready() checks a freshly loaded lot before a mutation
    writes its child record, and
  * complete_stage() repeats the check inside a conditional UPDATE, so a
    lot whose predecessor flag was never set cannot be advanced even if
    the caller skipped the first check.

Concurrent completions of the same stage are not serialized: the last
writer's `details` / `completed_at` win.
"""

import logging
from collections.abc import AsyncIterator
from datetime import datetime
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.middleware.exceptions import (
    PrecursorIncompleteError,
    ResourceNotFoundError,
)
from herbtrace.models.lot import STAGE_ORDER, Lot, Stage

logger = logging.getLogger(__name__)

# Lot-level status each stage advances the lot to (farmer sets it at creation)
STAGE_LOT_STATUS: dict[Stage, str] = {
    Stage.FARMER: "harvested",
    Stage.LAB_TECHNICIAN: "tested",
    Stage.PROCESSOR: "processing",
    Stage.MANAGER: "packaged",
}

# Display text written to Lot.updated_by
STAGE_ACTOR_LABEL: dict[Stage, str] = {
    Stage.FARMER: "Farmer",
    Stage.LAB_TECHNICIAN: "Laboratory",
    Stage.PROCESSOR: "Processor",
    Stage.MANAGER: "Manager",
}


def _column(stage: Stage, suffix: str):
    return getattr(Lot, f"{stage.value}_{suffix}")


def predecessors(stage: Stage) -> tuple[Stage, ...]:
    stage = Stage(stage)
    return STAGE_ORDER[: STAGE_ORDER.index(stage)]


def missing_precursor(lot: Lot, stage: Stage) -> Stage | None:
    """Return the first earlier stage that is not complete, or None."""
    for earlier in predecessors(stage):
        if not lot.stage_state(earlier).completed:
            return earlier
    return None


def ensure_stage_ready(lot: Lot, stage: Stage) -> None:
    """Raise PrecursorIncompleteError if `stage` cannot be completed yet."""
    missing = missing_precursor(lot, stage)
    if missing is not None:
        logger.warning(
            "Rejected %s stage for lot %s: %s stage incomplete",
            Stage(stage).value, lot.id, missing.value,
        )
        raise PrecursorIncompleteError(Stage(stage).value, missing.value)


def stage_values(stage: Stage, detail: str | None, at: datetime | None = None) -> dict[str, Any]:
    """Column values that mark `stage` complete."""
    stage = Stage(stage)
    return {
        f"{stage.value}_completed": True,
        f"{stage.value}_completed_at": at or datetime.utcnow(),
        f"{stage.value}_details": detail,
    }


async def complete_stage(
    db: AsyncSession,
    lot_id: str,
    stage: Stage,
    detail: str | None,
    **lot_fields: Any,
) -> None:
    """Mark `stage` complete on a lot, together with any extra lot fields.

    The UPDATE only matches when every predecessor flag is set; when it
    matches nothing the lot is re-read to report NotFound or the missing
    stage.  Re-completing an already complete stage is allowed and simply
    overwrites `details` / `completed_at`.
    """
    stage = Stage(stage)
    guards = [_column(earlier, "completed") == True for earlier in predecessors(stage)]  # noqa: E712

    values = stage_values(stage, detail)
    values.setdefault("status", STAGE_LOT_STATUS[stage])
    values.setdefault("updated_by", STAGE_ACTOR_LABEL[stage])
    values["updated_at"] = datetime.utcnow()
    values.update(lot_fields)

    result = await db.execute(
        update(Lot)
        .where(Lot.id == lot_id, *guards)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        lot = await db.get(Lot, lot_id, populate_existing=True)
        if lot is None:
            raise ResourceNotFoundError("Lot", lot_id)
        ensure_stage_ready(lot, stage)
        # Predecessors are complete now, so the row changed under us; retry once
        result = await db.execute(
            update(Lot)
            .where(Lot.id == lot_id, *guards)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise ResourceNotFoundError("Lot", lot_id)

    logger.info("Lot %s: %s stage complete (%s)", lot_id, stage.value, detail)


def pending_filter(stage: Stage) -> list:
    """WHERE clauses for lots waiting on `stage`.

    The immediately preceding stage must be complete and `stage` itself
    must not be.  For the farmer stage (no predecessor) this is every lot
    whose farmer slot is still open, i.e. legacy rows only.
    """
    stage = Stage(stage)
    clauses = [_column(stage, "completed") == False]  # noqa: E712
    earlier = predecessors(stage)
    if earlier:
        clauses.append(_column(earlier[-1], "completed") == True)  # noqa: E712
    return clauses


async def pending_for(db: AsyncSession, stage: Stage, *options) -> AsyncIterator[Lot]:
    """Yield lots awaiting `stage`, newest first.

    Each call runs a fresh query; iterate it again to see current state.
    Extra loader options (e.g. selectinload) are applied to the query.
    """
    stmt = (
        select(Lot)
        .where(*pending_filter(stage))
        .order_by(Lot.created_at.desc())
        .options(*options)
    )
    result = await db.execute(stmt)
    for lot in result.scalars():
        yield lot
