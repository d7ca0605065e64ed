"""Pydantic schemas for lots, workflow status and manager approval."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from herbtrace.schemas.harvest import HarvestOut


class StageStateOut(BaseModel):
    completed: bool
    completed_at: datetime | None
    details: str | None

    model_config = {"from_attributes": True}


class WorkflowStatusOut(BaseModel):
    farmer: StageStateOut
    lab_technician: StageStateOut
    processor: StageStateOut
    manager: StageStateOut

    @classmethod
    def from_lot(cls, lot) -> "WorkflowStatusOut":
        return cls.model_validate(
            {name: StageStateOut.model_validate(state) for name, state in lot.workflow_status.items()}
        )


class SupplyChainStatusOut(BaseModel):
    stage: str
    status: str
    color: str

    model_config = {"from_attributes": True}


# ── Response ─────────────────────────────────────────────────

class LotSummary(BaseModel):
    id: str
    batch_code: str
    lookup_code: str
    name: str
    species: str
    variety: str
    farmer_id: str
    quantity_kg: float
    quality_grade: str
    status: str
    updated_by: str | None
    created_at: datetime

    workflow_status: WorkflowStatusOut | None = None
    supply_chain_status: SupplyChainStatusOut | None = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_lot(cls, lot, supply_chain=None) -> "LotSummary":
        data = cls.model_validate(lot, from_attributes=True)
        data.workflow_status = WorkflowStatusOut.from_lot(lot)
        if supply_chain is not None:
            data.supply_chain_status = SupplyChainStatusOut.model_validate(supply_chain)
        return data


class LotOut(LotSummary):
    origin: dict | None
    harvest_date: datetime | None
    updated_at: datetime

    harvest_ids: list[str] = []
    test_result_ids: list[str] = []
    processing_batch_ids: list[str] = []
    certificate_ids: list[str] = []

    @classmethod
    def from_loaded(cls, lot) -> "LotOut":
        """Build from a lot whose child collections are loaded."""
        from herbtrace.services.aggregator import supply_chain_status

        data = cls.from_lot(lot, supply_chain_status(lot))
        data.harvest_ids = [h.id for h in lot.harvests]
        data.test_result_ids = [t.id for t in lot.test_results]
        data.processing_batch_ids = [b.id for b in lot.processing_batches]
        data.certificate_ids = [c.id for c in lot.certificates]
        return data


class HarvestRecordedOut(BaseModel):
    """Response from POST /api/harvests."""
    harvest: HarvestOut
    lot: LotOut
    lot_created: bool


# ── Manager approval ─────────────────────────────────────────

class ManagerApproval(BaseModel):
    """Payload for POST /api/manager/lots/{lot_id}/finalize."""
    final_details: str | None = Field(None, max_length=2000)
    certificate_info: dict[str, Any] | None = None


class ManagerApprovalOut(BaseModel):
    message: str
    lot: LotOut
    qr_data: dict[str, Any]
