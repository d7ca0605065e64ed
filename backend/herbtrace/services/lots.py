"""Lot lookups shared by the role services and routers."""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from herbtrace.middleware.exceptions import ResourceNotFoundError
from herbtrace.models.lot import Lot

# Eager-load every child collection; the aggregator and LotOut need them
LOT_CHILDREN = (
    selectinload(Lot.harvests),
    selectinload(Lot.test_results),
    selectinload(Lot.processing_batches),
    selectinload(Lot.certificates),
)


async def load_lot(db: AsyncSession, lot_id: str) -> Lot:
    """Load a lot with its children, overwriting any stale in-session copy."""
    result = await db.execute(
        select(Lot)
        .where(Lot.id == lot_id)
        .options(*LOT_CHILDREN)
        .execution_options(populate_existing=True)
    )
    lot = result.scalar_one_or_none()
    if lot is None:
        raise ResourceNotFoundError("Lot", lot_id)
    return lot


async def find_lot_for_harvest_key(
    db: AsyncSession, farmer_id: str, species: str, variety: str
) -> Lot | None:
    result = await db.execute(
        select(Lot).where(
            Lot.farmer_id == farmer_id,
            Lot.species == species,
            Lot.variety == variety,
        )
    )
    return result.scalar_one_or_none()
