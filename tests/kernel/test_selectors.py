"""
Read-only selectors over the canonical store.

Seeds two uploads through the reconciler, then checks ordering and filter
predicates for units, lifecycle events and sales summaries.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from recovery_ingestion.domain.types import UnitRow
from recovery_kernel.domain.types import LifecycleStage
from recovery_kernel.selectors import (
    LifecycleEventSelector,
    SalesMetricSelector,
    UnitFilter,
    UnitSelector,
)
from recovery_services.reconciler import CanonicalReconciler, UploadContext

FIRST = UploadContext(file_upload_id=uuid4(), business_date=date(2025, 2, 1))
SECOND = UploadContext(file_upload_id=uuid4(), business_date=date(2025, 2, 10))


@pytest.fixture
def seeded(session, recovery_config):
    reconciler = CanonicalReconciler(recovery_config)
    reconciler.apply_batch(
        session,
        [
            UnitRow(trgid="T1", received_on=date(2025, 1, 20)),
            UnitRow(
                trgid="T2",
                received_on=date(2025, 1, 20),
                checked_in_on=date(2025, 1, 22),
                tag_client_source="WMUS",
                facility="F1",
            ),
        ],
        FIRST,
    )
    reconciler.apply_batch(
        session,
        [
            UnitRow(
                trgid="T1",
                order_closed_date=date(2025, 2, 8),
                sale_price=Decimal("25.00"),
                marketplace_profile_sold_on="eBay",
                tag_client_source="WMUS",
            ),
            UnitRow(
                trgid="T3",
                order_closed_date=date(2025, 2, 9),
                sale_price=Decimal("10.00"),
                marketplace_profile_sold_on="Transfer",
            ),
        ],
        SECOND,
    )
    session.commit()
    return session


class TestUnitSelector:

    def test_find_ordered_by_trgid(self, seeded):
        assert [u.trgid for u in UnitSelector(seeded).find()] == ["T1", "T2", "T3"]

    def test_get(self, seeded):
        unit = UnitSelector(seeded).get("T1")
        assert unit.current_stage is LifecycleStage.SOLD
        assert unit.stage_date(LifecycleStage.RECEIVED) == date(2025, 1, 20)
        assert UnitSelector(seeded).get("missing") is None

    def test_client_source_filter(self, seeded):
        units = UnitSelector(seeded).find(UnitFilter(client_sources=("WMUS",)))
        assert [u.trgid for u in units] == ["T1", "T2"]

    def test_facility_filter(self, seeded):
        assert UnitSelector(seeded).count(UnitFilter(facilities=("F1",))) == 1

    def test_date_range_matches_any_lifecycle_date(self, seeded):
        units = UnitSelector(seeded).find(UnitFilter(date_from=date(2025, 2, 5)))
        assert [u.trgid for u in units] == ["T1", "T3"]

    def test_count_by_current_stage(self, seeded):
        counts = UnitSelector(seeded).count_by_stage()
        assert counts[LifecycleStage.SOLD] == 2
        assert counts[LifecycleStage.CHECKED_IN] == 1
        assert counts[LifecycleStage.RECEIVED] == 0

    def test_history_in_stage_order(self, seeded):
        history = UnitSelector(seeded).history("T1")
        assert [e.stage for e in history] == [LifecycleStage.RECEIVED, LifecycleStage.SOLD]
        assert history[1].fiscal_week == 6

    def test_events_for_file(self, seeded):
        events = UnitSelector(seeded).events_for_file(FIRST.file_upload_id)
        assert [(e.trgid, e.stage) for e in events] == [
            ("T1", LifecycleStage.RECEIVED),
            ("T2", LifecycleStage.CHECKED_IN),
        ]

    def test_count_events(self, seeded):
        selector = UnitSelector(seeded)
        assert selector.count_events() == 4
        assert selector.count_events(SECOND.file_upload_id) == 2


class TestLifecycleEventSelector:

    def test_stage_filter(self, seeded):
        events = LifecycleEventSelector(seeded).find(stages=(LifecycleStage.SOLD,))
        assert [e.trgid for e in events] == ["T1", "T3"]

    def test_excluded_files(self, seeded):
        events = LifecycleEventSelector(seeded).find(
            filters=UnitFilter(excluded_file_upload_ids=(FIRST.file_upload_id,))
        )
        assert {e.file_upload_id for e in events} == {SECOND.file_upload_id}

    def test_count_by_stage_uses_event_week(self, seeded):
        counts = LifecycleEventSelector(seeded).count_by_stage(UnitFilter(fiscal_weeks=(6,)))
        assert counts[LifecycleStage.SOLD] == 2
        assert counts[LifecycleStage.RECEIVED] == 0


class TestSalesMetricSelector:

    def test_transfers_not_reportable(self, seeded):
        selector = SalesMetricSelector(seeded)
        assert [m.trgid for m in selector.find()] == ["T1"]
        assert [m.trgid for m in selector.find(reportable_only=False)] == ["T1", "T3"]
        assert selector.count() == 2

    def test_get(self, seeded):
        metric = SalesMetricSelector(seeded).get("T1")
        assert metric.fiscal_week == 6
        assert metric.file_upload_id == SECOND.file_upload_id
        assert metric.sale_price == Decimal("25.00")
