"""Lot aggregator tests — structural classification from child counts."""

import pytest

from conftest import harvest_payload
from herbtrace.schemas.lab import TestResultCreate
from herbtrace.services.aggregator import (
    COMPLETED,
    HARVESTED,
    PENDING,
    PROCESSED,
    TESTED,
    ChildCounts,
    classify,
    load_child_counts,
    supply_chain_status,
)
from herbtrace.services.harvests import record_harvest
from herbtrace.services.lab import record_test_result
from herbtrace.services.lots import load_lot


@pytest.mark.unit
class TestClassify:

    @pytest.mark.parametrize(
        "counts, expected",
        [
            (ChildCounts(), PENDING),
            (ChildCounts(harvests=1), HARVESTED),
            (ChildCounts(harvests=1, test_results=1), TESTED),
            (ChildCounts(harvests=1, test_results=1, processing_batches=1), PROCESSED),
            (ChildCounts(1, 1, 1, 1), COMPLETED),
        ],
    )
    def test_first_match_wins(self, counts, expected):
        assert classify(counts) == expected

    def test_certificate_without_tests_is_still_harvested(self):
        # Order of checks matters more than which children exist
        assert classify(ChildCounts(harvests=2, certificates=1)) == HARVESTED

    def test_no_harvest_is_pending_regardless_of_other_children(self):
        assert classify(ChildCounts(test_results=3, processing_batches=1, certificates=1)) == PENDING

    def test_labels_and_colors(self):
        assert (PENDING.status, PENDING.color) == ("Awaiting Harvest", "#f39c12")
        assert (HARVESTED.status, HARVESTED.color) == ("Awaiting Lab Testing", "#3498db")
        assert (TESTED.status, TESTED.color) == ("Awaiting Processing", "#9b59b6")
        assert (PROCESSED.status, PROCESSED.color) == ("Awaiting Certification", "#e67e22")
        assert (COMPLETED.status, COMPLETED.color) == ("Supply Chain Complete", "#27ae60")


@pytest.mark.asyncio
class TestAggregatorOnStore:

    async def test_adding_test_result_moves_to_tested_only(
        self, db_session, farmer, lab_tech, notifier,
    ):
        outcome = await record_harvest(db_session, farmer, harvest_payload(), notifier)
        lot = outcome["lot"]
        assert supply_chain_status(lot).stage == "harvested"

        await record_test_result(
            db_session,
            lab_tech,
            TestResultCreate(
                harvest_id=outcome["harvest"].id,
                test_type="purity",
                quality_grade="A",
            ),
            notifier,
        )
        lot = await load_lot(db_session, lot.id)

        assert supply_chain_status(lot).stage == "tested"
        # Aggregator never looks at the flags; processor flag stays unset
        assert lot.processor_completed is False

    async def test_grouped_counts_match_loaded_counts(self, db_session, farmer, notifier):
        a = await record_harvest(db_session, farmer, harvest_payload("Tulsi"), notifier)
        await record_harvest(db_session, farmer, harvest_payload("Tulsi", quantity=3), notifier)
        b = await record_harvest(db_session, farmer, harvest_payload("Neem"), notifier)

        counts = await load_child_counts(db_session, [a["lot"].id, b["lot"].id, "missing"])

        assert counts[a["lot"].id] == ChildCounts(harvests=2)
        assert counts[b["lot"].id] == ChildCounts(harvests=1)
        assert counts["missing"] == ChildCounts()
        assert await load_child_counts(db_session, []) == {}
