"""Workflow router — per-role work queues.

Endpoints:
    GET  /api/workflow/pending/{stage}   Lots whose previous stage is done and `stage` is not
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor, get_current_actor
from herbtrace.database import get_db
from herbtrace.models.lot import Stage
from herbtrace.schemas.lot import LotSummary
from herbtrace.services.workflow import pending_for

router = APIRouter()


@router.get("/pending/{stage}", response_model=list[LotSummary])
async def get_pending(
    stage: Stage,
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    return [LotSummary.from_lot(lot) async for lot in pending_for(db, stage)]
