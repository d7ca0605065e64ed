"""Initial traceability schema — lots and their linked records.

Revision ID: 0001
Revises: (none)
Create Date: 2026-10-19

Run with:
    alembic upgrade head
"""

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

from alembic import op
import sqlalchemy as sa


def _stage_columns(stage: str) -> list[sa.Column]:
    return [
        sa.Column(f"{stage}_completed", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column(f"{stage}_completed_at", sa.DateTime()),
        sa.Column(f"{stage}_details", sa.Text()),
    ]


def upgrade() -> None:
    # ── Lots ─────────────────────────────────────────────────

    op.create_table(
        "lots",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("batch_code", sa.String(50), nullable=False),
        sa.Column("lookup_code", sa.String(64), nullable=False),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("species", sa.String(150), nullable=False),
        sa.Column("variety", sa.String(150), nullable=False, server_default="Unknown"),
        sa.Column("farmer_id", sa.String(36), nullable=False),
        sa.Column("quantity_kg", sa.Float(), server_default="0"),
        sa.Column("quality_grade", sa.String(1), server_default="C"),
        sa.Column("origin", sa.JSON()),
        sa.Column("harvest_date", sa.DateTime()),
        sa.Column("status", sa.String(30), server_default="harvested"),
        sa.Column("updated_by", sa.String(50)),
        *_stage_columns("farmer"),
        *_stage_columns("lab_technician"),
        *_stage_columns("processor"),
        *_stage_columns("manager"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(), server_default=sa.func.now()),
        sa.UniqueConstraint(
            "farmer_id", "species", "variety",
            name="uq_lots_farmer_species_variety",
        ),
    )
    op.create_index("ix_lots_batch_code", "lots", ["batch_code"], unique=True)
    op.create_index("ix_lots_lookup_code", "lots", ["lookup_code"], unique=True)
    op.create_index("ix_lots_farmer_id", "lots", ["farmer_id"])
    op.create_index("ix_lots_status", "lots", ["status"])
    op.create_index("ix_lots_created_at", "lots", ["created_at"])
    for stage in ("farmer", "lab_technician", "processor", "manager"):
        op.create_index(f"ix_lots_{stage}_completed", "lots", [f"{stage}_completed"])

    # ── Harvests ─────────────────────────────────────────────

    op.create_table(
        "harvests",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("lot_id", sa.String(36), sa.ForeignKey("lots.id"), nullable=False),
        sa.Column("farmer_id", sa.String(36), nullable=False),
        sa.Column("farmer_name", sa.String(200)),
        sa.Column("species", sa.String(150), nullable=False),
        sa.Column("variety", sa.String(150), nullable=False, server_default="Unknown"),
        sa.Column("quantity", sa.Float(), nullable=False),
        sa.Column("unit", sa.String(10), server_default="kg"),
        sa.Column("location", sa.JSON(), nullable=False),
        sa.Column("harvest_date", sa.DateTime(), nullable=False),
        sa.Column("weather_conditions", sa.JSON()),
        sa.Column("photo_ref", sa.String(255)),
        sa.Column("notes", sa.Text()),
        sa.Column("status", sa.String(30), server_default="pending_testing"),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_harvests_lot_id", "harvests", ["lot_id"])
    op.create_index("ix_harvests_farmer_id", "harvests", ["farmer_id"])
    op.create_index("ix_harvests_harvest_date", "harvests", ["harvest_date"])
    op.create_index("ix_harvests_status", "harvests", ["status"])
    op.create_index("ix_harvests_created_at", "harvests", ["created_at"])

    # ── Test results ─────────────────────────────────────────

    op.create_table(
        "test_results",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("lot_id", sa.String(36), sa.ForeignKey("lots.id"), nullable=False),
        sa.Column("harvest_id", sa.String(36), sa.ForeignKey("harvests.id"), nullable=False),
        sa.Column("test_type", sa.String(30), nullable=False),
        sa.Column("results", sa.JSON()),
        sa.Column("quality_grade", sa.String(1), nullable=False),
        sa.Column("lab_technician_id", sa.String(36), nullable=False),
        sa.Column("test_date", sa.DateTime(), nullable=False),
        sa.Column("status", sa.String(20), server_default="completed"),
        sa.Column("digital_signature", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_test_results_lot_id", "test_results", ["lot_id"])
    op.create_index("ix_test_results_harvest_id", "test_results", ["harvest_id"])
    op.create_index("ix_test_results_quality_grade", "test_results", ["quality_grade"])
    op.create_index("ix_test_results_created_at", "test_results", ["created_at"])

    # ── Processing ───────────────────────────────────────────

    op.create_table(
        "processing_batches",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("lot_id", sa.String(36), sa.ForeignKey("lots.id"), nullable=False),
        sa.Column("harvest_ids", sa.JSON(), nullable=False),
        sa.Column("processing_type", sa.String(30), nullable=False),
        sa.Column("facility_id", sa.String(36), nullable=False),
        sa.Column("start_date", sa.DateTime(), nullable=False),
        sa.Column("end_date", sa.DateTime()),
        sa.Column("status", sa.String(20), server_default="in_progress"),
        sa.Column("output_quantity", sa.Float()),
        sa.Column("output_unit", sa.String(10)),
        sa.Column("packaging", sa.JSON()),
        sa.Column("quality_control", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index("ix_processing_batches_lot_id", "processing_batches", ["lot_id"])
    op.create_index("ix_processing_batches_status", "processing_batches", ["status"])
    op.create_index("ix_processing_batches_created_at", "processing_batches", ["created_at"])

    op.create_table(
        "processing_steps",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "batch_id", sa.String(36),
            sa.ForeignKey("processing_batches.id"), nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("step_name", sa.String(150), nullable=False),
        sa.Column("details", sa.Text()),
        sa.Column("quality_passed", sa.Boolean()),
        sa.Column("quality_notes", sa.Text()),
        sa.Column("inspector_id", sa.String(36)),
        sa.Column("operator_id", sa.String(36), nullable=False),
        sa.Column("recorded_at", sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index("ix_processing_steps_batch_id", "processing_steps", ["batch_id"])
    op.create_index("ix_processing_steps_recorded_at", "processing_steps", ["recorded_at"])

    # ── Certificates ─────────────────────────────────────────

    op.create_table(
        "certificates",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("certificate_number", sa.String(50), nullable=False),
        sa.Column("lot_id", sa.String(36), sa.ForeignKey("lots.id"), nullable=False),
        sa.Column("harvest_id", sa.String(36), sa.ForeignKey("harvests.id"), nullable=False),
        sa.Column(
            "test_result_id", sa.String(36),
            sa.ForeignKey("test_results.id"), nullable=False,
        ),
        sa.Column("certificate_type", sa.String(20), nullable=False),
        sa.Column("issued_by", sa.String(36), nullable=False),
        sa.Column("issuer_name", sa.String(200)),
        sa.Column("issued_date", sa.DateTime(), server_default=sa.func.now()),
        sa.Column("expiry_date", sa.DateTime()),
        sa.Column("status", sa.String(20), server_default="active"),
        sa.Column("digital_signature", sa.JSON()),
        sa.Column("content", sa.JSON()),
        sa.Column("created_at", sa.DateTime(), server_default=sa.func.now()),
    )
    op.create_index(
        "ix_certificates_certificate_number", "certificates",
        ["certificate_number"], unique=True,
    )
    op.create_index("ix_certificates_lot_id", "certificates", ["lot_id"])
    op.create_index("ix_certificates_status", "certificates", ["status"])
    op.create_index("ix_certificates_created_at", "certificates", ["created_at"])


def downgrade() -> None:
    op.drop_table("certificates")
    op.drop_table("processing_steps")
    op.drop_table("processing_batches")
    op.drop_table("test_results")
    op.drop_table("harvests")
    op.drop_table("lots")
