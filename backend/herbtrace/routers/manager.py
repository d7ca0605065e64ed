"""Manager router — final approval.

Endpoints:
    POST  /api/manager/lots/{lot_id}/finalize   Complete the manager stage, reissue lookup code
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor, Role, require_role
from herbtrace.database import get_db
from herbtrace.schemas.lot import LotOut, ManagerApproval, ManagerApprovalOut
from herbtrace.services.approval import finalize_lot
from herbtrace.services.notifications import Notifier, get_session_notifier

router = APIRouter()


@router.post("/lots/{lot_id}/finalize", response_model=ManagerApprovalOut)
async def finalize(
    lot_id: str,
    body: ManagerApproval,
    db: AsyncSession = Depends(get_db),
    actor: Actor = Depends(require_role(Role.SUPPLY_MANAGER)),
    notifier: Notifier = Depends(get_session_notifier),
):
    """Finalize a lot.  Every earlier stage must be complete (else 409)."""
    lot, qr_data = await finalize_lot(db, actor, lot_id, body, notifier)
    return ManagerApprovalOut(
        message="Final approval completed and QR code generated",
        lot=LotOut.from_loaded(lot),
        qr_data=qr_data,
    )
