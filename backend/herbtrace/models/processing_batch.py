"""ProcessingBatch — one facility's processing run over one or more harvests.

Each batch carries an ordered list of ProcessingStep rows (drying rack
loaded, sieve pass, moisture check, …) recorded by operators as the run
progresses.

Lifecycle:  in_progress → completed | failed
"""

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, Float, ForeignKey, Integer, JSON, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from herbtrace.database import Base


class ProcessingBatch(Base):
    __tablename__ = "processing_batches"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    lot_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("lots.id"), nullable=False, index=True
    )
    # JSON list of contributing harvest ids
    harvest_ids: Mapped[list] = mapped_column(JSON, nullable=False)

    # drying | cleaning | grinding | extraction | packaging
    processing_type: Mapped[str] = mapped_column(String(30), nullable=False)
    facility_id: Mapped[str] = mapped_column(String(36), nullable=False)

    start_date: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    end_date: Mapped[datetime | None] = mapped_column(DateTime)

    # pending | in_progress | completed | failed
    status: Mapped[str] = mapped_column(String(20), default="in_progress", index=True)

    # ── Output ───────────────────────────────────────────────
    output_quantity: Mapped[float | None] = mapped_column(Float)
    # kg | g | lbs | tons | liters | ml
    output_unit: Mapped[str | None] = mapped_column(String(10))
    # JSON: {"type": "pouch", "material": "kraft", "size": "100g", "label": "..."}
    packaging: Mapped[dict | None] = mapped_column(JSON)
    # JSON: {"overall_grade": "A", "issues": [...], "recommendations": "..."}
    quality_control: Mapped[dict | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    lot = relationship("Lot", back_populates="processing_batches")
    steps = relationship(
        "ProcessingStep", back_populates="batch",
        order_by="ProcessingStep.position",
    )


class ProcessingStep(Base):
    __tablename__ = "processing_steps"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    batch_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("processing_batches.id"), nullable=False, index=True
    )
    # 0-based order within the batch
    position: Mapped[int] = mapped_column(Integer, nullable=False)

    step_name: Mapped[str] = mapped_column(String(150), nullable=False)
    details: Mapped[str | None] = mapped_column(Text)

    # ── Quality check ────────────────────────────────────────
    quality_passed: Mapped[bool | None] = mapped_column(Boolean)
    quality_notes: Mapped[str | None] = mapped_column(Text)
    inspector_id: Mapped[str | None] = mapped_column(String(36))

    operator_id: Mapped[str] = mapped_column(String(36), nullable=False)
    recorded_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    batch = relationship("ProcessingBatch", back_populates="steps")
