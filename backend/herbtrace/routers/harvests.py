"""Harvest router — farmer stage.

Endpoints:
    POST  /api/harvests/                  Record a harvest (merges into the farmer's lot)
    GET   /api/harvests/                  List harvests (?farmer_id=, ?status=)
    GET   /api/harvests/pending-testing   Harvests awaiting a lab test
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor, Role, get_current_actor, require_role
from herbtrace.database import get_db
from herbtrace.schemas.harvest import HarvestCreate, HarvestOut
from herbtrace.schemas.lot import HarvestRecordedOut, LotOut
from herbtrace.services.harvests import list_harvests, record_harvest
from herbtrace.services.lab import pending_testing_harvests
from herbtrace.services.notifications import Notifier, get_session_notifier

router = APIRouter()


@router.post("/", response_model=HarvestRecordedOut, status_code=status.HTTP_201_CREATED)
async def create_harvest(
    body: HarvestCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role(Role.FARMER)),
    notifier: Notifier = Depends(get_session_notifier),
):
    """Record a harvest for the calling farmer.

    The first harvest of a (species, variety) pair creates a lot; later
    ones add their quantity to it.
    """
    outcome = await record_harvest(db, actor, body, notifier)
    return HarvestRecordedOut(
        harvest=HarvestOut.model_validate(outcome["harvest"]),
        lot=LotOut.from_loaded(outcome["lot"]),
        lot_created=outcome["lot_created"],
    )


@router.get("/", response_model=list[HarvestOut])
async def get_harvests(
    farmer_id: str | None = Query(None),
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    return await list_harvests(db, farmer_id, status_filter, limit, offset)


@router.get("/pending-testing", response_model=list[HarvestOut])
async def get_pending_testing(
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_role(Role.LAB_TECHNICIAN)),
):
    return await pending_testing_harvests(db, limit)
