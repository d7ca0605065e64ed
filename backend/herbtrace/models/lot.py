"""Lot — the aggregate traceable unit of herbs moving through the chain.

A Lot is created by the first harvest a farmer submits for a given
(species, variety) pair; later harvests under the same key merge into it
and accumulate quantity.  It indexes its children (harvests, test results,
processing batches, certificates) through their `lot_id` column but does
not own their lifecycle.

Two independent notions of progress live side by side:

  * lot-level status:   harvested → tested → processing → packaged
                        (→ shipped → delivered, set outside the core)
  * workflow status:    four explicit stage slots, each written only by
                        its own role — farmer, lab_technician, processor,
                        manager — as (completed, completed_at, details)
"""

import enum
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import (
    Boolean, DateTime, Float, JSON, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from herbtrace.database import Base


class Stage(str, enum.Enum):
    """Workflow stages in their fixed order."""
    FARMER = "farmer"
    LAB_TECHNICIAN = "lab_technician"
    PROCESSOR = "processor"
    MANAGER = "manager"


STAGE_ORDER: tuple[Stage, ...] = (
    Stage.FARMER,
    Stage.LAB_TECHNICIAN,
    Stage.PROCESSOR,
    Stage.MANAGER,
)


@dataclass(frozen=True)
class StageState:
    completed: bool
    completed_at: datetime | None
    details: str | None


class Lot(Base):
    __tablename__ = "lots"
    __table_args__ = (
        UniqueConstraint(
            "farmer_id", "species", "variety",
            name="uq_lots_farmer_species_variety",
        ),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )

    # ── Lookup keys ──────────────────────────────────────────
    # Accumulated batch identifier, fixed at creation
    batch_code: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    # Public lookup code, reissued when the manager finalizes the lot
    lookup_code: Mapped[str] = mapped_column(
        String(64), unique=True, nullable=False, index=True
    )

    # ── Herb identification ──────────────────────────────────
    name: Mapped[str] = mapped_column(String(150), nullable=False)
    species: Mapped[str] = mapped_column(String(150), nullable=False)
    variety: Mapped[str] = mapped_column(String(150), nullable=False, default="Unknown")
    farmer_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)

    # ── Quantity / quality ───────────────────────────────────
    quantity_kg: Mapped[float] = mapped_column(Float, default=0.0)
    quality_grade: Mapped[str] = mapped_column(String(1), default="C")

    # ── Origin ───────────────────────────────────────────────
    # JSON: {"coordinates": [lng, lat], "address": ..., "region": ..., "country": ...}
    origin: Mapped[dict | None] = mapped_column(JSON)
    harvest_date: Mapped[datetime | None] = mapped_column(DateTime)

    # ── Lot-level status ─────────────────────────────────────
    # harvested | tested | processing | packaged | shipped | delivered
    status: Mapped[str] = mapped_column(String(30), default="harvested", index=True)
    updated_by: Mapped[str | None] = mapped_column(String(50))

    # ── Workflow status (one slot per stage) ─────────────────
    farmer_completed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    farmer_completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    farmer_details: Mapped[str | None] = mapped_column(Text)

    lab_technician_completed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    lab_technician_completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    lab_technician_details: Mapped[str | None] = mapped_column(Text)

    processor_completed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    processor_completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    processor_details: Mapped[str | None] = mapped_column(Text)

    manager_completed: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    manager_completed_at: Mapped[datetime | None] = mapped_column(DateTime)
    manager_details: Mapped[str | None] = mapped_column(Text)

    # ── Metadata ─────────────────────────────────────────────
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    # Default lazy="select"; use explicit selectinload() in queries that
    # need the children (see services.lots.load_lot).
    harvests = relationship(
        "Harvest", back_populates="lot", order_by="Harvest.created_at",
    )
    test_results = relationship(
        "TestResult", back_populates="lot", order_by="TestResult.created_at",
    )
    processing_batches = relationship(
        "ProcessingBatch", back_populates="lot",
        order_by="ProcessingBatch.created_at",
    )
    certificates = relationship(
        "Certificate", back_populates="lot", order_by="Certificate.created_at",
    )

    def stage_state(self, stage: Stage) -> StageState:
        prefix = Stage(stage).value
        return StageState(
            completed=bool(getattr(self, f"{prefix}_completed")),
            completed_at=getattr(self, f"{prefix}_completed_at"),
            details=getattr(self, f"{prefix}_details"),
        )

    @property
    def workflow_status(self) -> dict[str, StageState]:
        return {stage.value: self.stage_state(stage) for stage in STAGE_ORDER}
