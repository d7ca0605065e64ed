"""TestResult — one lab test applied to one harvest within a lot."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from herbtrace.database import Base


class TestResult(Base):
    __tablename__ = "test_results"
    # Keep pytest from collecting this class
    __test__ = False

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    lot_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("lots.id"), nullable=False, index=True
    )
    harvest_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("harvests.id"), nullable=False, index=True
    )

    # purity | potency | contamination | microbial | heavy_metals | pesticides
    test_type: Mapped[str] = mapped_column(String(30), nullable=False)
    # JSON: {"purity_pct": 98.5, "moisture_pct": 8.2, "ash_pct": 2.1}
    results: Mapped[dict] = mapped_column(JSON, default=dict)
    quality_grade: Mapped[str] = mapped_column(String(1), nullable=False, index=True)

    lab_technician_id: Mapped[str] = mapped_column(String(36), nullable=False)
    test_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    # pending | in_progress | completed | failed
    status: Mapped[str] = mapped_column(String(20), default="completed")
    # JSON: {"signature": "...", "timestamp": "...", "verified": false}
    digital_signature: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    lot = relationship("Lot", back_populates="test_results")
    harvest = relationship("Harvest")
