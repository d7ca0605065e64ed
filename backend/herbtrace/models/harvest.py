"""Harvest — one farmer's submission of a quantity of a species.

Immutable once recorded except for `status`, which the workflow advances:

    pending_testing → tested → processing → approved   (or rejected)
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Float, ForeignKey, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from herbtrace.database import Base


class Harvest(Base):
    __tablename__ = "harvests"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    lot_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("lots.id"), nullable=False, index=True
    )

    # ── Who ──────────────────────────────────────────────────
    farmer_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    farmer_name: Mapped[str | None] = mapped_column(String(200))

    # ── What ─────────────────────────────────────────────────
    species: Mapped[str] = mapped_column(String(150), nullable=False)
    variety: Mapped[str] = mapped_column(String(150), nullable=False, default="Unknown")
    quantity: Mapped[float] = mapped_column(Float, nullable=False)
    # kg | g | lbs | tons
    unit: Mapped[str] = mapped_column(String(10), default="kg")

    # ── Where / when ─────────────────────────────────────────
    # JSON: {"coordinates": [lng, lat], "address": ..., "region": ..., "country": ...}
    location: Mapped[dict] = mapped_column(JSON, nullable=False)
    harvest_date: Mapped[datetime] = mapped_column(DateTime, nullable=False, index=True)
    # JSON: {"temperature": 31.0, "humidity": 60, "rainfall": 0}
    weather_conditions: Mapped[dict | None] = mapped_column(JSON)

    # Reference resolved by the file storage service
    photo_ref: Mapped[str | None] = mapped_column(String(255))
    notes: Mapped[str | None] = mapped_column(Text)

    # pending_testing | tested | approved | rejected | processing
    status: Mapped[str] = mapped_column(String(30), default="pending_testing", index=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)

    lot = relationship("Lot", back_populates="harvests")
