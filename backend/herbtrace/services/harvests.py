"""Harvest intake service — the farmer stage.

Handles a farmer's harvest submission, including:
  - Finding the lot for (farmer, species, variety), or creating it with a
    fresh batch identifier and lookup code
  - Accumulating the harvest quantity (in kg) onto the lot
  - Recording the Harvest row linked to that lot
  - Marking the farmer workflow stage complete (last write wins on details)
  - Broadcasting the change
"""

import logging

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor
from herbtrace.models.harvest import Harvest
from herbtrace.models.lot import Lot, Stage
from herbtrace.schemas.harvest import HarvestCreate
from herbtrace.services.lots import find_lot_for_harvest_key, load_lot
from herbtrace.services.notifications import Notifier
from herbtrace.services.workflow import complete_stage, stage_values
from herbtrace.utils.numbering import generate_code

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"

UNIT_TO_KG = {
    "kg": 1.0,
    "g": 0.001,
    "lbs": 0.45359237,
    "tons": 1000.0,
}


def to_kg(quantity: float, unit: str) -> float:
    return quantity * UNIT_TO_KG[unit]


def _origin_from(body: HarvestCreate) -> dict:
    loc = body.location
    return {
        "coordinates": list(loc.coordinates) if loc.coordinates else [0.0, 0.0],
        "address": loc.address or UNKNOWN,
        "region": loc.region or UNKNOWN,
        "country": loc.country or UNKNOWN,
    }


async def record_harvest(
    db: AsyncSession,
    actor: Actor,
    body: HarvestCreate,
    notifier: Notifier,
) -> dict:
    """Record a harvest and complete the farmer stage of its lot.

    Returns:
        {
            "harvest": Harvest,
            "lot": Lot (children loaded),
            "lot_created": bool,
        }
    """
    variety = (body.variety or "").strip() or UNKNOWN
    quantity_kg = to_kg(body.quantity, body.unit)

    lot = await find_lot_for_harvest_key(db, actor.user_id, body.species, variety)
    lot_created = lot is None

    if lot_created:
        detail = f"Harvested {body.quantity:g}{body.unit} of {body.species}"
        lot = Lot(
            batch_code=await generate_code(db, "lot_batch"),
            lookup_code=await generate_code(db, "lookup"),
            name=body.species,
            species=body.species,
            variety=variety,
            farmer_id=actor.user_id,
            quantity_kg=quantity_kg,
            quality_grade="C",
            origin=_origin_from(body),
            harvest_date=body.harvest_date,
            status="harvested",
            updated_by="Farmer",
            **stage_values(Stage.FARMER, detail),
        )
        db.add(lot)
        await db.flush()  # populate lot.id
        logger.info("Created lot %s (%s) for farmer %s", lot.id, lot.batch_code, actor.user_id)
    else:
        detail = f"Updated harvest: {body.quantity:g}{body.unit} of {body.species}"
        # Atomic increment so concurrent harvests for the same lot both count
        await db.execute(
            update(Lot)
            .where(Lot.id == lot.id)
            .values(quantity_kg=Lot.quantity_kg + quantity_kg)
            .execution_options(synchronize_session=False)
        )
        # Farmer stage is revisited as more harvests arrive; the lot keeps
        # its current lot-level status
        await complete_stage(db, lot.id, Stage.FARMER, detail, status=Lot.status)

    harvest = Harvest(
        lot_id=lot.id,
        farmer_id=actor.user_id,
        farmer_name=actor.name,
        species=body.species,
        variety=variety,
        quantity=body.quantity,
        unit=body.unit,
        location=body.location.model_dump(),
        harvest_date=body.harvest_date,
        weather_conditions=(
            body.weather_conditions.model_dump() if body.weather_conditions else None
        ),
        photo_ref=body.photo_ref,
        notes=body.notes,
        status="pending_testing",
    )
    db.add(harvest)
    await db.flush()

    lot = await load_lot(db, lot.id)

    await notifier.lot_updated(lot, "Harvest Added")
    await notifier.publish(
        "harvest.recorded",
        {
            "harvest_id": harvest.id,
            "lot_id": lot.id,
            "farmer_id": actor.user_id,
            "message": f"New harvest added: {body.species} ({body.quantity:g}{body.unit})",
        },
    )

    return {"harvest": harvest, "lot": lot, "lot_created": lot_created}


async def list_harvests(
    db: AsyncSession,
    farmer_id: str | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Harvest]:
    stmt = select(Harvest)
    if farmer_id:
        stmt = stmt.where(Harvest.farmer_id == farmer_id)
    if status:
        stmt = stmt.where(Harvest.status == status)
    stmt = stmt.order_by(Harvest.created_at.desc()).limit(limit).offset(offset)
    result = await db.execute(stmt)
    return list(result.scalars().all())
