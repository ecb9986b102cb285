"""
Kernel value types shared by ingestion, reconciliation, and reporting.

Contents:
    FileType        -- declared type of an uploaded export.
    FeeType         -- the eleven fee types, in expected-fee reference order.
    LifecycleStage  -- ordered unit lifecycle (Received < ... < Sold).
    FieldClock      -- one attribute value plus the business date that set it.

Architecture position:
    Kernel > Domain -- pure values, zero I/O.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Any


class FileType(str, Enum):
    """Declared type of an uploaded export."""

    SALES = "Sales"
    INBOUND = "Inbound"
    OUTBOUND = "Outbound"
    INVENTORY = "Inventory"
    MONTHLY = "Monthly"
    PRODUCTION = "Production"
    UNKNOWN = "Unknown"


class FeeType(str, Enum):
    """The eleven fee types resolved for every sale."""

    THIRD_PARTY_MARKETPLACE = "third_party_marketplace"
    CHECK_IN = "check_in"
    MARKETING = "marketing"
    MERCHANT = "merchant"
    OVERBOX = "overbox"
    PACKAGING = "packaging"
    PICK_PACK_SHIP = "pick_pack_ship"
    REFUND = "refund"
    REFURB = "refurb"
    REVSHARE = "revshare"
    SHIPPING = "shipping"

    @property
    def column(self) -> str:
        """Attribute suffix used by persisted fee columns (``<prefix>_<type>_fee``)."""
        return f"{self.value}_fee"


class LifecycleStage(str, Enum):
    """Unit lifecycle stage.  Declaration order is progression order."""

    RECEIVED = "Received"
    CHECKED_IN = "CheckedIn"
    TESTED = "Tested"
    LISTED = "Listed"
    SOLD = "Sold"

    @property
    def rank(self) -> int:
        return _STAGE_ORDER.index(self)

    def progresses_beyond(self, other: LifecycleStage | None) -> bool:
        """True if this stage is strictly later than ``other`` (None = no stage)."""
        return other is None or self.rank > other.rank

    @property
    def date_field(self) -> str:
        """Name of the unit attribute holding the date this stage was reached."""
        return STAGE_DATE_FIELDS[self]


_STAGE_ORDER: tuple[LifecycleStage, ...] = tuple(LifecycleStage)

STAGE_DATE_FIELDS: dict[LifecycleStage, str] = {
    LifecycleStage.RECEIVED: "received_on",
    LifecycleStage.CHECKED_IN: "checked_in_on",
    LifecycleStage.TESTED: "tested_on",
    LifecycleStage.LISTED: "first_listed_date",
    LifecycleStage.SOLD: "order_closed_date",
}


def implied_stage(dates: Mapping[str, date | None]) -> LifecycleStage | None:
    """Furthest-progressed stage whose date is present.

    Evaluated Sold, Listed, Tested, CheckedIn, Received; first non-null wins.
    """
    for stage in reversed(_STAGE_ORDER):
        if dates.get(stage.date_field) is not None:
            return stage
    return None


@dataclass(frozen=True)
class FieldClock:
    """A per-attribute logical clock keyed by business date.

    ``source_date`` is the business date of the file that last wrote
    ``value``.  A write from another file is accepted only when its
    business date is the same or newer.
    """

    value: Any
    source_date: date | None

    def accepts(self, incoming_date: date) -> bool:
        return self.source_date is None or incoming_date >= self.source_date

    def merge(self, incoming_value: Any, incoming_date: date) -> FieldClock:
        """Return the clock after offering ``incoming_value``.

        Null incoming values never overwrite a recorded value.
        """
        if incoming_value is None or not self.accepts(incoming_date):
            return self
        return FieldClock(incoming_value, incoming_date)
