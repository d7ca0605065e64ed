"""Certificate — an issued document backed by a specific TestResult.

Signature metadata is informational only; nothing here verifies it.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from herbtrace.database import Base


class Certificate(Base):
    __tablename__ = "certificates"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    certificate_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )

    # ── Traceability links ───────────────────────────────────
    lot_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("lots.id"), nullable=False, index=True
    )
    harvest_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("harvests.id"), nullable=False
    )
    test_result_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("test_results.id"), nullable=False
    )

    # quality | organic | purity | safety | origin
    certificate_type: Mapped[str] = mapped_column(String(20), nullable=False)
    issued_by: Mapped[str] = mapped_column(String(36), nullable=False)
    issuer_name: Mapped[str | None] = mapped_column(String(200))
    issued_date: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    expiry_date: Mapped[datetime | None] = mapped_column(DateTime)

    # active | expired | revoked
    status: Mapped[str] = mapped_column(String(20), default="active", index=True)
    digital_signature: Mapped[dict | None] = mapped_column(JSON)
    content: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    lot = relationship("Lot", back_populates="certificates")
    test_result = relationship("TestResult")
