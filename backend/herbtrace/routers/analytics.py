"""Analytics router.

Endpoints:
    GET  /api/analytics/dashboard   Totals and quality-grade distribution
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor, Role, require_role
from herbtrace.database import get_db
from herbtrace.services.analytics import dashboard_totals

router = APIRouter()


@router.get("/dashboard")
async def dashboard(
    db: AsyncSession = Depends(get_db),
    _actor: Actor = Depends(require_role(Role.SUPPLY_MANAGER)),
):
    return await dashboard_totals(db)
