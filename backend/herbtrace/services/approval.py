"""Manager approval — the final workflow stage.

Finalizing a lot completes the manager stage, moves the lot to
"packaged", marks its harvests approved and reissues its public lookup
code.  The previous lookup code stops resolving; the batch code and the
lot id keep working.
"""

import logging
from datetime import datetime
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.auth.deps import Actor
from herbtrace.models.lot import Lot, Stage
from herbtrace.schemas.lot import ManagerApproval, WorkflowStatusOut
from herbtrace.services.lots import load_lot
from herbtrace.services.notifications import Notifier
from herbtrace.services.workflow import complete_stage, ensure_stage_ready
from herbtrace.utils.numbering import generate_code

logger = logging.getLogger(__name__)

DEFAULT_MANAGER_DETAIL = "Final approval and certification completed"


def build_qr_data(lot: Lot, certificate_info: dict | None) -> dict[str, Any]:
    """Payload encoded alongside the final lookup code."""
    return {
        "lot_id": lot.id,
        "lookup_code": lot.lookup_code,
        "batch_code": lot.batch_code,
        "species": lot.species,
        "variety": lot.variety,
        "origin": lot.origin,
        "workflow_status": WorkflowStatusOut.from_lot(lot).model_dump(mode="json"),
        "harvest_ids": [h.id for h in lot.harvests],
        "test_result_ids": [t.id for t in lot.test_results],
        "processing_batch_ids": [b.id for b in lot.processing_batches],
        "certificate_ids": [c.id for c in lot.certificates],
        "certificate_info": certificate_info or {},
        "generated_at": datetime.utcnow().isoformat(),
    }


async def finalize_lot(
    db: AsyncSession,
    actor: Actor,
    lot_id: str,
    body: ManagerApproval,
    notifier: Notifier,
) -> tuple[Lot, dict[str, Any]]:
    """Complete the manager stage and issue the final lookup code.

    Raises:
        ResourceNotFoundError: the lot does not exist.
        PrecursorIncompleteError: farmer, lab or processor stage incomplete.
    """
    lot = await load_lot(db, lot_id)
    ensure_stage_ready(lot, Stage.MANAGER)

    previous_code = lot.lookup_code
    final_code = await generate_code(db, "final_lookup")
    detail = (body.final_details or "").strip() or DEFAULT_MANAGER_DETAIL

    for harvest in lot.harvests:
        harvest.status = "approved"
    await db.flush()

    await complete_stage(db, lot.id, Stage.MANAGER, detail, lookup_code=final_code)

    lot = await load_lot(db, lot.id)
    qr_data = build_qr_data(lot, body.certificate_info)
    logger.info(
        "Lot %s finalized by %s: lookup code %s -> %s",
        lot.id, actor.user_id, previous_code, final_code,
    )

    await notifier.lot_updated(lot, "Final Approval")
    await notifier.publish(
        "lot.finalized",
        {
            "lot_id": lot.id,
            "lookup_code": lot.lookup_code,
            "batch_code": lot.batch_code,
            "message": f"Lot {lot.batch_code} approved and packaged",
        },
    )
    return lot, qr_data
