"""Dashboard counters."""

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from herbtrace.models.certificate import Certificate
from herbtrace.models.harvest import Harvest
from herbtrace.models.lot import Lot
from herbtrace.models.processing_batch import ProcessingBatch
from herbtrace.models.test_result import TestResult


async def _count(db: AsyncSession, model) -> int:
    return (await db.execute(select(func.count(model.id)))).scalar() or 0


async def dashboard_totals(db: AsyncSession) -> dict:
    """Record totals plus the quality-grade spread of all test results.

    Returns:
        {
            "total_lots": 12,
            "total_harvests": 30,
            "total_tests": 25,
            "total_batches": 9,
            "total_certificates": 4,
            "quality_distribution": {"A": 10, "B": 8, "C": 5, "D": 2},
            "lot_status": {"harvested": 3, "tested": 4, ...},
        }
    """
    grades = await db.execute(
        select(TestResult.quality_grade, func.count(TestResult.id))
        .group_by(TestResult.quality_grade)
    )
    quality_distribution = {grade: 0 for grade in ("A", "B", "C", "D")}
    for grade, count in grades.all():
        quality_distribution[grade] = int(count)

    statuses = await db.execute(
        select(Lot.status, func.count(Lot.id)).group_by(Lot.status)
    )

    return {
        "total_lots": await _count(db, Lot),
        "total_harvests": await _count(db, Harvest),
        "total_tests": await _count(db, TestResult),
        "total_batches": await _count(db, ProcessingBatch),
        "total_certificates": await _count(db, Certificate),
        "quality_distribution": quality_distribution,
        "lot_status": {status: int(count) for status, count in statuses.all()},
    }
