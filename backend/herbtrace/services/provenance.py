"""Provenance composer — consumer-facing story of one lot.

Token resolution order (first match wins):
    1. current public lookup code
    2. accumulated batch code
    3. raw lot id

The narrative has one entry per workflow stage.  Description and date
come from the stage's stored details / completed_at when present and are
otherwise derived from whether the matching child records exist, so lots
recorded before workflow tracking still read sensibly.  Each entry's
status is the stage's completion flag and nothing else.
"""

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.middleware.exceptions import ResourceNotFoundError
from herbtrace.models.lot import Lot, Stage
from herbtrace.schemas.lot import SupplyChainStatusOut, WorkflowStatusOut
from herbtrace.schemas.provenance import (
    NarrativeStep,
    ProvenanceCertificate,
    ProvenanceOut,
    ProvenanceTestResult,
)
from herbtrace.services.aggregator import supply_chain_status
from herbtrace.services.lots import LOT_CHILDREN

logger = logging.getLogger(__name__)

UNKNOWN_FARMER = "Unknown farmer"

STEP_TITLES = {
    Stage.FARMER: "Farmer",
    Stage.LAB_TECHNICIAN: "Laboratory Testing",
    Stage.PROCESSOR: "Processing",
    Stage.MANAGER: "Manager Approval",
}

COMPLETED_BY = {
    Stage.FARMER: "Farmer",
    Stage.LAB_TECHNICIAN: "Lab Technician",
    Stage.PROCESSOR: "Processor",
    Stage.MANAGER: "Manager",
}


async def resolve_lot(db: AsyncSession, token: str) -> Lot:
    """Find the lot a public token refers to, with children loaded."""
    for column in (Lot.lookup_code, Lot.batch_code, Lot.id):
        result = await db.execute(
            select(Lot)
            .where(column == token)
            .options(*LOT_CHILDREN)
            .execution_options(populate_existing=True)
        )
        lot = result.scalar_one_or_none()
        if lot is not None:
            return lot
    logger.info("Provenance lookup for unknown token %r", token)
    raise ResourceNotFoundError("Lot", token)


def _origin_text(origin: dict | None) -> str:
    origin = origin or {}
    parts = [origin.get("address"), origin.get("region"), origin.get("country")]
    known = [p for p in parts if p and p != "Unknown"]
    return ", ".join(known) if known else "Unknown"


def _fallbacks(lot: Lot) -> dict[Stage, tuple[str, datetime | None]]:
    """Presence-derived description and date for each stage."""
    harvest = lot.harvests[0] if lot.harvests else None
    tests = lot.test_results
    batch = lot.processing_batches[0] if lot.processing_batches else None
    certs = lot.certificates

    farmer_name = (harvest.farmer_name if harvest else None) or UNKNOWN_FARMER
    return {
        Stage.FARMER: (
            f"Harvested by {farmer_name}",
            harvest.harvest_date if harvest else lot.harvest_date,
        ),
        Stage.LAB_TECHNICIAN: (
            "Quality tests completed" if tests else "Quality tests pending",
            tests[0].test_date if tests else None,
        ),
        Stage.PROCESSOR: (
            "Processing completed" if batch else "Processing pending",
            batch.start_date if batch else None,
        ),
        Stage.MANAGER: (
            "Final approval completed" if certs else "Final approval pending",
            certs[0].issued_date if certs else None,
        ),
    }


def build_narrative(lot: Lot) -> list[NarrativeStep]:
    fallbacks = _fallbacks(lot)
    steps = []
    for stage, title in STEP_TITLES.items():
        state = lot.stage_state(stage)
        fallback_text, fallback_date = fallbacks[stage]
        steps.append(
            NarrativeStep(
                step=title,
                description=state.details or fallback_text,
                date=state.completed_at or fallback_date,
                status="completed" if state.completed else "pending",
                completed_by=COMPLETED_BY[stage],
            )
        )
    return steps


def compose(lot: Lot) -> ProvenanceOut:
    """Build the provenance view of a lot whose children are loaded."""
    harvest = lot.harvests[0] if lot.harvests else None
    batch = lot.processing_batches[0] if lot.processing_batches else None

    return ProvenanceOut(
        lot_id=lot.id,
        name=lot.name,
        species=lot.species,
        variety=lot.variety,
        harvest_date=harvest.harvest_date if harvest else lot.harvest_date,
        origin=_origin_text(lot.origin),
        farmer_name=(harvest.farmer_name if harvest else None) or UNKNOWN_FARMER,
        processing_date=batch.start_date if batch else None,
        batch_code=lot.batch_code,
        lookup_code=lot.lookup_code,
        status=lot.status,
        quality_grade=lot.quality_grade,
        workflow_status=WorkflowStatusOut.from_lot(lot),
        supply_chain_status=SupplyChainStatusOut.model_validate(supply_chain_status(lot)),
        supply_chain=build_narrative(lot),
        test_results=[
            ProvenanceTestResult(
                test_type=t.test_type,
                quality_grade=t.quality_grade,
                results=t.results or {},
                date=t.test_date,
            )
            for t in lot.test_results
        ],
        certificates=[
            ProvenanceCertificate(
                name=c.certificate_type,
                certificate_number=c.certificate_number,
                status=c.status,
                issued_by=c.issuer_name or c.issued_by,
                issued_date=c.issued_date,
                valid_until=c.expiry_date,
            )
            for c in lot.certificates
        ],
    )


async def compose_provenance(db: AsyncSession, token: str) -> ProvenanceOut:
    lot = await resolve_lot(db, token)
    return compose(lot)
