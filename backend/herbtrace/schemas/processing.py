"""Pydantic schemas for processing batches and steps (the processor stage)."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from herbtrace.schemas.common import QualityGrade

ProcessingType = Literal["drying", "cleaning", "grinding", "extraction", "packaging"]
OutputUnit = Literal["kg", "g", "lbs", "tons", "liters", "ml"]


class QualityCheck(BaseModel):
    passed: bool
    notes: str | None = None
    inspector_id: str | None = None


class ProcessingStepCreate(BaseModel):
    step_name: str = Field(..., min_length=1, max_length=150)
    details: str | None = None
    quality_check: QualityCheck | None = None


class ProcessingBatchCreate(BaseModel):
    """Payload for POST /api/processing/batches.

    All harvests must already be recorded and belong to the same lot.
    """
    harvest_ids: list[str] = Field(..., min_length=1)
    processing_type: ProcessingType
    start_date: datetime | None = None
    steps: list[ProcessingStepCreate] = Field(default_factory=list)


class Packaging(BaseModel):
    type: str | None = None
    material: str | None = None
    size: str | None = None
    label: str | None = None


class QualityControl(BaseModel):
    overall_grade: QualityGrade | None = None
    issues: list[str] = Field(default_factory=list)
    recommendations: str | None = None


class ProcessingBatchClose(BaseModel):
    """Payload for POST /api/processing/batches/{batch_id}/close."""
    status: Literal["completed", "failed"] = "completed"
    end_date: datetime | None = None
    output_quantity: float | None = Field(None, ge=0)
    output_unit: OutputUnit | None = None
    packaging: Packaging | None = None
    quality_control: QualityControl | None = None


# ── Response ─────────────────────────────────────────────────

class ProcessingStepOut(BaseModel):
    id: str
    batch_id: str
    position: int
    step_name: str
    details: str | None
    quality_passed: bool | None
    quality_notes: str | None
    inspector_id: str | None
    operator_id: str
    recorded_at: datetime

    model_config = {"from_attributes": True}


class ProcessingBatchOut(BaseModel):
    id: str
    lot_id: str
    harvest_ids: list[str]
    processing_type: str
    facility_id: str
    start_date: datetime
    end_date: datetime | None
    status: str
    output_quantity: float | None
    output_unit: str | None
    packaging: dict | None
    quality_control: dict | None
    created_at: datetime
    steps: list[ProcessingStepOut] = []

    model_config = {"from_attributes": True}
