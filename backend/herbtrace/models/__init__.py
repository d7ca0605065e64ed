"""Aggregate model imports for Alembic auto-detection."""

from herbtrace.models.lot import Lot, Stage, StageState, STAGE_ORDER
from herbtrace.models.harvest import Harvest
from herbtrace.models.test_result import TestResult
from herbtrace.models.processing_batch import ProcessingBatch, ProcessingStep
from herbtrace.models.certificate import Certificate

__all__ = [
    "Lot", "Stage", "StageState", "STAGE_ORDER",
    "Harvest", "TestResult", "ProcessingBatch", "ProcessingStep",
    "Certificate",
]
