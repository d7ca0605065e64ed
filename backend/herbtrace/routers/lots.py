"""Lot router — supply-chain overview and lot detail.

Endpoints:
    GET  /api/lots/               All lots with their supply-chain stage (?status=, ?species=)
    GET  /api/lots/{lot_id}       Single lot detail
    GET  /api/lots/{lot_id}/qr    QR code (SVG) for the lot's current lookup code
"""

import io

import segno
from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor, get_current_actor
from herbtrace.database import get_db
from herbtrace.middleware.exceptions import ResourceNotFoundError
from herbtrace.models.lot import Lot
from herbtrace.schemas.common import PaginatedResponse
from herbtrace.schemas.lot import LotOut, LotSummary
from herbtrace.services.aggregator import classify, load_child_counts
from herbtrace.services.lots import load_lot

router = APIRouter()


@router.get("/", response_model=PaginatedResponse[LotSummary])
async def list_lots(
    status_filter: str | None = Query(None, alias="status"),
    species: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    """Supply-chain overview: every lot with its structural classification."""
    base = select(Lot)
    if status_filter:
        base = base.where(Lot.status == status_filter)
    if species:
        base = base.where(Lot.species == species)

    count_result = await db.execute(select(func.count()).select_from(base.subquery()))
    total = count_result.scalar() or 0

    result = await db.execute(
        base.order_by(Lot.created_at.desc()).limit(limit).offset(offset)
    )
    lots = result.scalars().all()
    counts = await load_child_counts(db, [lot.id for lot in lots])

    return PaginatedResponse(
        items=[LotSummary.from_lot(lot, classify(counts[lot.id])) for lot in lots],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/{lot_id}", response_model=LotOut)
async def get_lot(
    lot_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    lot = await load_lot(db, lot_id)
    return LotOut.from_loaded(lot)


@router.get("/{lot_id}/qr")
async def get_lot_qr(
    lot_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    result = await db.execute(select(Lot.lookup_code).where(Lot.id == lot_id))
    lookup_code = result.scalar_one_or_none()
    if lookup_code is None:
        raise ResourceNotFoundError("Lot", lot_id)

    buf = io.BytesIO()
    segno.make(lookup_code, error="m").save(buf, kind="svg", scale=4)
    return Response(
        content=buf.getvalue(),
        media_type="image/svg+xml",
        headers={"X-Lookup-Code": lookup_code},
    )
