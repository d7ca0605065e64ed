"""Consumer-facing provenance read model."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel

from herbtrace.schemas.lot import SupplyChainStatusOut, WorkflowStatusOut


class NarrativeStep(BaseModel):
    step: str
    description: str
    date: datetime | None
    status: Literal["completed", "pending"]
    completed_by: str


class ProvenanceTestResult(BaseModel):
    test_type: str
    quality_grade: str
    results: dict[str, float]
    date: datetime


class ProvenanceCertificate(BaseModel):
    name: str
    certificate_number: str
    status: str
    issued_by: str
    issued_date: datetime
    valid_until: datetime | None


class ProvenanceOut(BaseModel):
    lot_id: str
    name: str
    species: str
    variety: str
    harvest_date: datetime | None
    origin: str
    farmer_name: str
    processing_date: datetime | None
    batch_code: str
    lookup_code: str
    status: str
    quality_grade: str

    workflow_status: WorkflowStatusOut
    supply_chain_status: SupplyChainStatusOut
    supply_chain: list[NarrativeStep]

    test_results: list[ProvenanceTestResult]
    certificates: list[ProvenanceCertificate]
