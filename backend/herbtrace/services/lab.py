"""Lab testing service — the lab technician stage.

A test result is always recorded against one harvest; the owning lot is
resolved from that harvest before anything is written.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor
from herbtrace.middleware.exceptions import ResourceNotFoundError
from herbtrace.models.harvest import Harvest
from herbtrace.models.lot import Lot, Stage
from herbtrace.models.test_result import TestResult
from herbtrace.schemas.lab import TestResultCreate
from herbtrace.services.lots import load_lot
from herbtrace.services.notifications import Notifier
from herbtrace.services.workflow import complete_stage, ensure_stage_ready

logger = logging.getLogger(__name__)


async def record_test_result(
    db: AsyncSession,
    actor: Actor,
    body: TestResultCreate,
    notifier: Notifier,
) -> tuple[TestResult, Lot]:
    """Record a lab test and complete the lab technician stage.

    Raises:
        ResourceNotFoundError: the harvest (or its lot) does not exist.
        PrecursorIncompleteError: the lot's farmer stage is not complete.
    """
    harvest = await db.get(Harvest, body.harvest_id)
    if harvest is None:
        raise ResourceNotFoundError("Harvest", body.harvest_id)

    lot = await load_lot(db, harvest.lot_id)
    ensure_stage_ready(lot, Stage.LAB_TECHNICIAN)

    result = TestResult(
        lot_id=lot.id,
        harvest_id=harvest.id,
        test_type=body.test_type,
        results=dict(body.results),
        quality_grade=body.quality_grade,
        lab_technician_id=actor.user_id,
        test_date=body.test_date or datetime.utcnow(),
        status="completed",
        digital_signature=(
            body.digital_signature.model_dump() if body.digital_signature else None
        ),
    )
    db.add(result)
    harvest.status = "tested"
    await db.flush()
    logger.info(
        "Recorded %s test %s (grade %s) for harvest %s",
        result.test_type, result.id, result.quality_grade, harvest.id,
    )

    await complete_stage(
        db, lot.id, Stage.LAB_TECHNICIAN,
        f"Quality testing completed - Grade: {body.quality_grade}",
    )
    lot = await load_lot(db, lot.id)

    await notifier.lot_updated(lot, "Lab Test Completed")
    await notifier.publish(
        "test_result.recorded",
        {
            "test_result_id": result.id,
            "harvest_id": harvest.id,
            "lot_id": lot.id,
            "test_type": result.test_type,
            "quality_grade": result.quality_grade,
            "message": f"Test completed for harvest {harvest.id}",
        },
    )
    return result, lot


async def list_test_results(
    db: AsyncSession,
    lot_id: str | None = None,
    harvest_id: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[TestResult]:
    stmt = select(TestResult)
    if lot_id:
        stmt = stmt.where(TestResult.lot_id == lot_id)
    if harvest_id:
        stmt = stmt.where(TestResult.harvest_id == harvest_id)
    stmt = stmt.order_by(TestResult.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def pending_testing_harvests(db: AsyncSession, limit: int = 50) -> list[Harvest]:
    """Harvests still waiting for a lab test, oldest first."""
    result = await db.execute(
        select(Harvest)
        .where(Harvest.status == "pending_testing")
        .order_by(Harvest.created_at)
        .limit(limit)
    )
    return list(result.scalars().all())
