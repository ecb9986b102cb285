"""
recovery_engines.fiscal_calendar -- Retail fiscal week, day, quarter, and year.

Responsibility:
    Map a calendar date to its position in the Saturday-start retail
    calendar used by every weekly report.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Weeks run Saturday (day 1) through Friday (day 7).
    - Week 1 is the week starting on the first Saturday on/after January 1
      of the date's calendar year.  Dates before that Saturday clamp to
      week 1; the week number is never below 1.
    - Quarters: weeks 1-13 Q1, 14-26 Q2, 27-39 Q3, everything later Q4.
    - Fiscal year is the calendar year, except that January belongs to the
      previous fiscal year.  Week numbering stays calendar-year based; the
      two are deliberately independent.

Failure modes:
    - None for dates.  ``fiscal_position(None)`` returns None.

Usage:
    from recovery_engines.fiscal_calendar import fiscal_position

    pos = fiscal_position(date(2025, 1, 4))
    pos.week, pos.day, pos.label    # 1, 1, "WK01 2025"
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, timedelta

DAY_NAMES: tuple[str, ...] = ("Sat", "Sun", "Mon", "Tue", "Wed", "Thu", "Fri")


@dataclass(frozen=True)
class FiscalPosition:
    """Where one calendar date sits in the retail calendar."""

    week: int
    day: int
    quarter: int
    fiscal_year: int
    calendar_year: int
    week_start: date

    @property
    def week_end(self) -> date:
        return self.week_start + timedelta(days=6)

    @property
    def day_name(self) -> str:
        return DAY_NAMES[self.day - 1]

    @property
    def label(self) -> str:
        return week_label(self.week, self.calendar_year)


def week_start(d: date) -> date:
    """The Saturday on or before ``d``."""
    # date.weekday(): Monday=0 .. Saturday=5, Sunday=6
    return d - timedelta(days=(d.weekday() + 2) % 7)


def fiscal_day(d: date) -> int:
    """Day of the retail week, Saturday=1 through Friday=7."""
    return (d.weekday() + 2) % 7 + 1


def first_saturday(year: int) -> date:
    """First Saturday on or after January 1 of ``year``."""
    return week_start(date(year, 1, 7))


def fiscal_week(d: date) -> int:
    """Retail week number of ``d`` within its calendar year (minimum 1)."""
    elapsed = (week_start(d) - first_saturday(d.year)).days
    return max(1, elapsed // 7 + 1)


def fiscal_quarter(week: int) -> int:
    if week <= 13:
        return 1
    if week <= 26:
        return 2
    if week <= 39:
        return 3
    return 4


def fiscal_year(d: date) -> int:
    return d.year - 1 if d.month == 1 else d.year


def fiscal_position(d: date | None) -> FiscalPosition | None:
    if d is None:
        return None
    week = fiscal_week(d)
    return FiscalPosition(
        week=week,
        day=fiscal_day(d),
        quarter=fiscal_quarter(week),
        fiscal_year=fiscal_year(d),
        calendar_year=d.year,
        week_start=week_start(d),
    )


def week_date_range(week: int, year: int) -> tuple[date, date]:
    """Inclusive (Saturday, Friday) bounds of retail week ``week`` in ``year``."""
    start = first_saturday(year) + timedelta(weeks=max(1, week) - 1)
    return start, start + timedelta(days=6)


def week_label(week: int, year: int) -> str:
    return f"WK{week:02d} {year}"
