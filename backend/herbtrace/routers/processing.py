"""Processing router — processor stage.

Endpoints:
    POST  /api/processing/batches                    Create a batch (completes processor stage)
    GET   /api/processing/batches                    All batches, newest first (?status=)
    GET   /api/processing/batches/completed          Completed batches
    GET   /api/processing/batches/{batch_id}         Batch detail with steps
    POST  /api/processing/batches/{batch_id}/steps   Append a step
    POST  /api/processing/batches/{batch_id}/close   Close as completed / failed
    GET   /api/processing/steps/recent               Latest steps across batches
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor, Role, get_current_actor, require_role
from herbtrace.database import get_db
from herbtrace.schemas.common import PaginatedResponse
from herbtrace.schemas.processing import (
    ProcessingBatchClose,
    ProcessingBatchCreate,
    ProcessingBatchOut,
    ProcessingStepCreate,
    ProcessingStepOut,
)
from herbtrace.services.notifications import Notifier, get_session_notifier
from herbtrace.services.processing import (
    add_step,
    close_batch,
    completed_batches,
    create_processing_batch,
    list_batches,
    load_batch,
    recent_steps,
)

router = APIRouter()


@router.post("/batches", response_model=ProcessingBatchOut, status_code=status.HTTP_201_CREATED)
async def create_batch(
    body: ProcessingBatchCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role(Role.PROCESSOR)),
    notifier: Notifier = Depends(get_session_notifier),
):
    batch, _lot = await create_processing_batch(db, actor, body, notifier)
    return batch


@router.get("/batches", response_model=PaginatedResponse[ProcessingBatchOut])
async def get_batches(
    status_filter: str | None = Query(None, alias="status"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    items, total = await list_batches(db, status_filter, limit, offset)
    return PaginatedResponse(
        items=[ProcessingBatchOut.model_validate(b) for b in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/batches/completed", response_model=PaginatedResponse[ProcessingBatchOut])
async def get_completed_batches(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    items, total = await completed_batches(db, limit, offset)
    return PaginatedResponse(
        items=[ProcessingBatchOut.model_validate(b) for b in items],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/batches/{batch_id}", response_model=ProcessingBatchOut)
async def get_batch(
    batch_id: str,
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    return await load_batch(db, batch_id)


@router.post(
    "/batches/{batch_id}/steps",
    response_model=ProcessingStepOut,
    status_code=status.HTTP_201_CREATED,
)
async def create_step(
    batch_id: str,
    body: ProcessingStepCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role(Role.PROCESSOR)),
    notifier: Notifier = Depends(get_session_notifier),
):
    return await add_step(db, actor, batch_id, body, notifier)


@router.post("/batches/{batch_id}/close", response_model=ProcessingBatchOut)
async def close(
    batch_id: str,
    body: ProcessingBatchClose,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role(Role.PROCESSOR)),
    notifier: Notifier = Depends(get_session_notifier),
):
    return await close_batch(db, actor, batch_id, body, notifier)


@router.get("/steps/recent", response_model=list[ProcessingStepOut])
async def get_recent_steps(
    limit: int = Query(20, ge=1, le=100),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    return await recent_steps(db, limit)
