"""Pydantic schemas for certificates."""

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel

from herbtrace.schemas.common import DigitalSignature

CertificateType = Literal["quality", "organic", "purity", "safety", "origin"]


class CertificateCreate(BaseModel):
    """Payload for POST /api/certificates.  Lot and harvest are taken from
    the referenced test result."""
    test_result_id: str
    certificate_type: CertificateType
    expiry_date: datetime | None = None
    content: dict[str, Any] | None = None
    digital_signature: DigitalSignature | None = None


class CertificateOut(BaseModel):
    id: str
    certificate_number: str
    lot_id: str
    harvest_id: str
    test_result_id: str
    certificate_type: str
    issued_by: str
    issuer_name: str | None
    issued_date: datetime
    expiry_date: datetime | None
    status: str
    digital_signature: dict | None = None
    content: dict | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
