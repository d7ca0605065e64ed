"""Lot aggregator — structural supply-chain stage of a lot.

Classifies a lot purely from how many children it has linked, evaluated in
a fixed order (first match wins):

    no harvest        → pending     "Awaiting Harvest"
    no test result    → harvested   "Awaiting Lab Testing"
    no batch          → tested      "Awaiting Processing"
    no certificate    → processed   "Awaiting Certification"
    otherwise         → completed   "Supply Chain Complete"

The workflow flags on the lot are deliberately ignored here; the two views
can disagree (a finalized lot with no certificate is still "processed").
"""

from dataclasses import dataclass

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.models.certificate import Certificate
from herbtrace.models.harvest import Harvest
from herbtrace.models.lot import Lot
from herbtrace.models.processing_batch import ProcessingBatch
from herbtrace.models.test_result import TestResult


@dataclass(frozen=True)
class ChildCounts:
    harvests: int = 0
    test_results: int = 0
    processing_batches: int = 0
    certificates: int = 0


@dataclass(frozen=True)
class SupplyChainStatus:
    stage: str
    status: str
    color: str


PENDING = SupplyChainStatus("pending", "Awaiting Harvest", "#f39c12")
HARVESTED = SupplyChainStatus("harvested", "Awaiting Lab Testing", "#3498db")
TESTED = SupplyChainStatus("tested", "Awaiting Processing", "#9b59b6")
PROCESSED = SupplyChainStatus("processed", "Awaiting Certification", "#e67e22")
COMPLETED = SupplyChainStatus("completed", "Supply Chain Complete", "#27ae60")


def classify(counts: ChildCounts) -> SupplyChainStatus:
    if counts.harvests <= 0:
        return PENDING
    if counts.test_results <= 0:
        return HARVESTED
    if counts.processing_batches <= 0:
        return TESTED
    if counts.certificates <= 0:
        return PROCESSED
    return COMPLETED


def counts_from_loaded(lot: Lot) -> ChildCounts:
    """Counts from a lot whose child relationships are already loaded."""
    return ChildCounts(
        harvests=len(lot.harvests),
        test_results=len(lot.test_results),
        processing_batches=len(lot.processing_batches),
        certificates=len(lot.certificates),
    )


def supply_chain_status(lot: Lot) -> SupplyChainStatus:
    return classify(counts_from_loaded(lot))


async def load_child_counts(
    db: AsyncSession, lot_ids: list[str]
) -> dict[str, ChildCounts]:
    """Count linked children for many lots with one grouped query per kind."""
    if not lot_ids:
        return {}

    per_kind: dict[str, dict[str, int]] = {}
    for name, model in (
        ("harvests", Harvest),
        ("test_results", TestResult),
        ("processing_batches", ProcessingBatch),
        ("certificates", Certificate),
    ):
        result = await db.execute(
            select(model.lot_id, func.count(model.id))
            .where(model.lot_id.in_(lot_ids))
            .group_by(model.lot_id)
        )
        per_kind[name] = {row[0]: int(row[1]) for row in result.all()}

    return {
        lot_id: ChildCounts(
            harvests=per_kind["harvests"].get(lot_id, 0),
            test_results=per_kind["test_results"].get(lot_id, 0),
            processing_batches=per_kind["processing_batches"].get(lot_id, 0),
            certificates=per_kind["certificates"].get(lot_id, 0),
        )
        for lot_id in lot_ids
    }
