"""Lab router — lab technician stage.

Endpoints:
    POST  /api/lab/test-results   Record a test result for a harvest
    GET   /api/lab/test-results   List test results (?lot_id=, ?harvest_id=)
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor, Role, get_current_actor, require_role
from herbtrace.database import get_db
from herbtrace.schemas.lab import TestResultCreate, TestResultOut
from herbtrace.services.lab import list_test_results, record_test_result
from herbtrace.services.notifications import Notifier, get_session_notifier

router = APIRouter()


@router.post("/test-results", response_model=TestResultOut, status_code=status.HTTP_201_CREATED)
async def create_test_result(
    body: TestResultCreate,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role(Role.LAB_TECHNICIAN)),
    notifier: Notifier = Depends(get_session_notifier),
):
    """Record a test; fails with 409 until the lot's farmer stage is complete."""
    result, _lot = await record_test_result(db, actor, body, notifier)
    return result


@router.get("/test-results", response_model=list[TestResultOut])
async def get_test_results(
    lot_id: str | None = Query(None),
    harvest_id: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(get_current_actor),
):
    return await list_test_results(db, lot_id, harvest_id, limit, offset)
