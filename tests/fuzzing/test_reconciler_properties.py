"""
Property-based tests for canonical reconciliation.

Properties:
- Merge: for an older file A and a newer file B touching the same unit,
  every field holds B's value when B has one, else A's, whatever order
  the files arrive in
- Idempotence: ingesting the same export twice leaves the canonical store
  unchanged and appends no lifecycle events

Each example works on fresh trgids, so examples share the per-test
database without seeing each other's units.
"""

import string
from datetime import date
from decimal import Decimal
from uuid import uuid4

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st
from hypothesis.strategies import composite
from sqlalchemy import func, select

from recovery_ingestion.domain.types import IngestionStatus, UnitRow
from recovery_kernel.models.lifecycle_event import LifecycleEvent
from recovery_kernel.models.unit import MERGED_ATTRIBUTES, UnitCanonical
from recovery_services.reconciler import CanonicalReconciler, UploadContext

OLDER = date(2025, 2, 1)
NEWER = date(2025, 2, 10)

FIXTURE_SETTINGS = settings(
    max_examples=40,
    deadline=None,
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)

short_text = st.text(alphabet=string.ascii_letters + string.digits + " ", min_size=1, max_size=20)
business_dates = st.dates(min_value=date(2024, 6, 1), max_value=date(2025, 6, 30))
retail = st.decimals(
    min_value=Decimal("0.01"),
    max_value=Decimal("9999.99"),
    places=2,
    allow_nan=False,
    allow_infinity=False,
)

FIELD_STRATEGIES = {
    "received_on": business_dates,
    "tested_on": business_dates,
    "order_closed_date": business_dates,
    "title": short_text,
    "category_name": short_text,
    "facility": st.sampled_from(["DFW", "ATL", "PHX", "RNO"]),
    "program_name": short_text,
    "upc_retail": retail,
    "sale_price": retail,
    "tag_ebay_auction_sale": st.booleans(),
}

OWNERS = ("a", "b", "both", "none")


@composite
def merge_plans(draw):
    """Per field: which file carries it, and the value each file would carry."""
    return {
        name: (draw(st.sampled_from(OWNERS)), draw(strategy), draw(strategy))
        for name, strategy in FIELD_STRATEGIES.items()
    }


def _row(trgid: str, plan: dict, side: str) -> UnitRow:
    index = 1 if side == "a" else 2
    return UnitRow(
        trgid=trgid,
        **{name: values[index] for name, values in plan.items() if values[0] in (side, "both")},
    )


class TestMergeProperties:

    @given(plan=merge_plans(), newer_first=st.booleans())
    @FIXTURE_SETTINGS
    def test_newer_file_wins_each_field_without_loss(
        self, session, recovery_config, plan, newer_first
    ):
        reconciler = CanonicalReconciler(recovery_config)
        trgid = f"FZ-{uuid4().hex}"
        files = [(OLDER, _row(trgid, plan, "a")), (NEWER, _row(trgid, plan, "b"))]
        if newer_first:
            files.reverse()

        for business_date, row in files:
            upload = UploadContext(file_upload_id=uuid4(), business_date=business_date)
            reconciler.apply_batch(session, [row], upload)
            session.commit()

        unit = session.scalar(select(UnitCanonical).where(UnitCanonical.trgid == trgid))
        for name, (owner, a_value, b_value) in plan.items():
            expected = {"a": a_value, "b": b_value, "both": b_value, "none": None}[owner]
            assert getattr(unit, name) == expected, name
            if owner != "none":
                expected_date = OLDER if owner == "a" else NEWER
                assert unit.field_dates[name] == expected_date.isoformat()
        assert unit.last_business_date == NEWER


@composite
def export_rows(draw):
    """Rows for up to four units, repeats allowed, as mapped CSV cells."""
    rows = []
    for _ in range(draw(st.integers(min_value=1, max_value=8))):
        received = draw(st.one_of(st.none(), business_dates))
        closed = draw(st.one_of(st.none(), business_dates))
        price = draw(st.one_of(st.none(), retail))
        rows.append(
            (
                draw(st.integers(min_value=0, max_value=3)),
                f"{received.month}/{received.day}/{received.year}" if received else "",
                f"{closed.month}/{closed.day}/{closed.year}" if closed else "",
                f"${price}" if price is not None else "",
                draw(st.sampled_from(["", "eBay", "WhatNot", "Walmart Marketplace"])),
                draw(st.sampled_from(["", "Home", "Electronics", "Toys"])),
            )
        )
    return rows


class TestIdempotenceProperties:

    HEADER = (
        "TRGID,ReceivedOn,OrderClosedDate,Sale Price (Discount applied),"
        "Marketplace Profile Sold On,CategoryName"
    )

    @staticmethod
    def _snapshot(session_factory, prefix: str):
        with session_factory() as s:
            units = s.scalars(
                select(UnitCanonical)
                .where(UnitCanonical.trgid.startswith(prefix))
                .order_by(UnitCanonical.trgid)
            ).all()
            events = s.scalar(
                select(func.count(LifecycleEvent.id)).where(LifecycleEvent.trgid.startswith(prefix))
            )
            state = {
                u.trgid: (
                    {attr: getattr(u, attr) for attr in MERGED_ATTRIBUTES},
                    u.current_stage,
                    u.sales_channel,
                    u.walmart_channel,
                    u.fiscal_week,
                    dict(u.field_dates),
                )
                for u in units
            }
            return state, events

    @given(rows=export_rows())
    @FIXTURE_SETTINGS
    def test_second_ingestion_changes_nothing(self, ingestion_service, session_factory, rows):
        prefix = f"FZ-{uuid4().hex[:12]}-"
        lines = [self.HEADER] + [
            ",".join([f"{prefix}{unit}", *cells]) for unit, *cells in rows
        ]
        export = "\n".join(lines) + "\n"

        first = ingestion_service.ingest_text_sync(export, "WMUS Sales 03.01.2025.csv")
        before = self._snapshot(session_factory, prefix)
        second = ingestion_service.ingest_text_sync(export, "WMUS Sales 03.01.2025.csv")

        assert first.status is IngestionStatus.COMPLETED
        assert second.status is IngestionStatus.COMPLETED
        assert second.events_appended == 0
        assert self._snapshot(session_factory, prefix) == before
