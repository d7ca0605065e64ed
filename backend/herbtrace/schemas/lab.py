"""Pydantic schemas for lab test submission (the lab technician stage)."""

from datetime import datetime
from typing import Annotated, Literal

from pydantic import BaseModel, Field

from herbtrace.schemas.common import DigitalSignature, QualityGrade

TestType = Literal[
    "purity", "potency", "contamination", "microbial", "heavy_metals", "pesticides",
]


class TestResultCreate(BaseModel):
    """Payload for POST /api/lab/test-results.

    `quality_grade` is required: a submission without one is rejected
    before anything is written.
    """
    __test__ = False

    harvest_id: str
    test_type: TestType
    results: dict[str, Annotated[float, Field(allow_inf_nan=False)]] = Field(default_factory=dict)
    quality_grade: QualityGrade
    test_date: datetime | None = None
    digital_signature: DigitalSignature | None = None


class TestResultOut(BaseModel):
    __test__ = False

    id: str
    lot_id: str
    harvest_id: str
    test_type: str
    results: dict
    quality_grade: str
    lab_technician_id: str
    test_date: datetime
    status: str
    digital_signature: dict | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
