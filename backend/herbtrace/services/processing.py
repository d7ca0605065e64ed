"""Processing service — the processor stage.

A processing batch groups one or more harvests of the same lot into a
facility run.  Creating the first batch completes the processor stage;
steps can be appended while the batch is open and the batch is closed
with its output and packaging.

Batch lifecycle:  in_progress → completed | failed
"""

import logging
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from herbtrace.auth.deps import Actor
from herbtrace.middleware.exceptions import (
    ResourceNotFoundError,
    ValidationFailureError,
)
from herbtrace.models.harvest import Harvest
from herbtrace.models.lot import Lot, Stage
from herbtrace.models.processing_batch import ProcessingBatch, ProcessingStep
from herbtrace.schemas.processing import (
    ProcessingBatchClose,
    ProcessingBatchCreate,
    ProcessingStepCreate,
)
from herbtrace.services.lots import load_lot
from herbtrace.services.notifications import Notifier
from herbtrace.services.workflow import complete_stage, ensure_stage_ready

logger = logging.getLogger(__name__)


def _step_row(batch_id: str, position: int, body: ProcessingStepCreate, operator_id: str) -> ProcessingStep:
    qc = body.quality_check
    return ProcessingStep(
        batch_id=batch_id,
        position=position,
        step_name=body.step_name,
        details=body.details,
        quality_passed=qc.passed if qc else None,
        quality_notes=qc.notes if qc else None,
        inspector_id=qc.inspector_id if qc else None,
        operator_id=operator_id,
        recorded_at=datetime.utcnow(),
    )


async def load_batch(db: AsyncSession, batch_id: str) -> ProcessingBatch:
    result = await db.execute(
        select(ProcessingBatch)
        .where(ProcessingBatch.id == batch_id)
        .options(selectinload(ProcessingBatch.steps))
        .execution_options(populate_existing=True)
    )
    batch = result.scalar_one_or_none()
    if batch is None:
        raise ResourceNotFoundError("ProcessingBatch", batch_id)
    return batch


async def create_processing_batch(
    db: AsyncSession,
    actor: Actor,
    body: ProcessingBatchCreate,
    notifier: Notifier,
) -> tuple[ProcessingBatch, Lot]:
    """Create a processing batch and complete the processor stage.

    Every referenced harvest must exist and all of them must belong to the
    same lot.  Duplicate ids in the payload are collapsed.

    Raises:
        ResourceNotFoundError: a harvest does not exist.
        ValidationFailureError: the harvests span more than one lot.
        PrecursorIncompleteError: farmer or lab stage is not complete.
    """
    harvest_ids = list(dict.fromkeys(body.harvest_ids))
    result = await db.execute(select(Harvest).where(Harvest.id.in_(harvest_ids)))
    harvests = {h.id: h for h in result.scalars().all()}

    for hid in harvest_ids:
        if hid not in harvests:
            raise ResourceNotFoundError("Harvest", hid)

    lot_ids = {h.lot_id for h in harvests.values()}
    if len(lot_ids) != 1:
        raise ValidationFailureError(
            "All harvests in a processing batch must belong to the same lot",
            field="harvest_ids",
        )

    lot = await load_lot(db, lot_ids.pop())
    ensure_stage_ready(lot, Stage.PROCESSOR)

    batch = ProcessingBatch(
        lot_id=lot.id,
        harvest_ids=harvest_ids,
        processing_type=body.processing_type,
        facility_id=actor.user_id,
        start_date=body.start_date or datetime.utcnow(),
        status="in_progress",
    )
    db.add(batch)
    await db.flush()  # populate batch.id

    for position, step in enumerate(body.steps):
        db.add(_step_row(batch.id, position, step, actor.user_id))

    for harvest in harvests.values():
        harvest.status = "processing"
    await db.flush()
    logger.info(
        "Created %s batch %s for lot %s (%d harvest(s), %d step(s))",
        batch.processing_type, batch.id, lot.id, len(harvest_ids), len(body.steps),
    )

    await complete_stage(
        db, lot.id, Stage.PROCESSOR,
        f"Processing batch created - Type: {body.processing_type}",
    )
    lot = await load_lot(db, lot.id)
    batch = await load_batch(db, batch.id)

    await notifier.lot_updated(lot, "Processing Started")
    await notifier.publish(
        "processing_batch.created",
        {
            "batch_id": batch.id,
            "lot_id": lot.id,
            "harvest_ids": harvest_ids,
            "processing_type": batch.processing_type,
            "message": f"Processing batch created: {batch.processing_type}",
        },
    )
    return batch, lot


async def add_step(
    db: AsyncSession,
    actor: Actor,
    batch_id: str,
    body: ProcessingStepCreate,
    notifier: Notifier,
) -> ProcessingStep:
    """Append a step to an open batch."""
    batch = await load_batch(db, batch_id)
    if batch.status != "in_progress":
        raise ValidationFailureError(
            f"Cannot add steps to a batch that is {batch.status}", field="status"
        )

    step = _step_row(batch.id, len(batch.steps), body, actor.user_id)
    db.add(step)
    await db.flush()

    await notifier.publish(
        "processing_step.added",
        {
            "batch_id": batch.id,
            "lot_id": batch.lot_id,
            "step_id": step.id,
            "step_name": step.step_name,
            "message": f"Processing step added: {step.step_name}",
        },
    )
    return step


async def close_batch(
    db: AsyncSession,
    actor: Actor,
    batch_id: str,
    body: ProcessingBatchClose,
    notifier: Notifier,
) -> ProcessingBatch:
    """Close an open batch as completed or failed."""
    batch = await load_batch(db, batch_id)
    if batch.status != "in_progress":
        raise ValidationFailureError(
            f"Batch is already {batch.status}", field="status"
        )

    batch.status = body.status
    batch.end_date = body.end_date or datetime.utcnow()
    batch.output_quantity = body.output_quantity
    batch.output_unit = body.output_unit
    batch.packaging = body.packaging.model_dump() if body.packaging else None
    batch.quality_control = (
        body.quality_control.model_dump() if body.quality_control else None
    )
    await db.flush()
    logger.info("Closed batch %s as %s", batch.id, batch.status)

    await notifier.publish(
        "processing_batch.closed",
        {
            "batch_id": batch.id,
            "lot_id": batch.lot_id,
            "status": batch.status,
            "output_quantity": batch.output_quantity,
            "output_unit": batch.output_unit,
            "message": f"Processing batch {batch.status}",
        },
    )
    return batch


async def recent_steps(db: AsyncSession, limit: int = 20) -> list[ProcessingStep]:
    """Most recently recorded steps across all batches."""
    result = await db.execute(
        select(ProcessingStep)
        .order_by(ProcessingStep.recorded_at.desc(), ProcessingStep.position.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def completed_batches(
    db: AsyncSession, limit: int = 50, offset: int = 0
) -> tuple[list[ProcessingBatch], int]:
    base = select(ProcessingBatch).where(ProcessingBatch.status == "completed")

    total = (
        await db.execute(select(func.count()).select_from(base.subquery()))
    ).scalar() or 0

    result = await db.execute(
        base.options(selectinload(ProcessingBatch.steps))
        .order_by(ProcessingBatch.end_date.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total


async def list_batches(
    db: AsyncSession,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> tuple[list[ProcessingBatch], int]:
    """All batches, newest start first, optionally narrowed to one status."""
    base = select(ProcessingBatch)
    if status:
        base = base.where(ProcessingBatch.status == status)

    total = (
        await db.execute(select(func.count()).select_from(base.subquery()))
    ).scalar() or 0

    result = await db.execute(
        base.options(selectinload(ProcessingBatch.steps))
        .order_by(ProcessingBatch.start_date.desc(), ProcessingBatch.created_at.desc())
        .limit(limit)
        .offset(offset)
    )
    return list(result.scalars().all()), total
