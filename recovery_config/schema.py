"""
Configuration schema (``recovery_config.schema``).

Frozen dataclasses describing one loaded rule set.  Engine-facing parts
(FeeSchedule, ChannelRules) are the engine's own parameter types, so the
loader hands engines exactly what they consume.
"""

from __future__ import annotations

from dataclasses import dataclass

from recovery_engines.dimensions import ChannelRules
from recovery_engines.fees import FeeSchedule


@dataclass(frozen=True)
class IngestionSettings:
    batch_size: int
    delimiter: str
    encoding: str
    required_columns: tuple[str, ...]


@dataclass(frozen=True)
class ReportingSettings:
    excluded_marketplace: str
    owned_program_keyword: str
    trend_weeks: int


@dataclass(frozen=True)
class RecoveryConfig:
    """One validated, immutable rule set."""

    config_id: str
    version: int
    checksum: str
    source: str
    ingestion: IngestionSettings
    fee_schedule: FeeSchedule
    channel_rules: ChannelRules
    reporting: ReportingSettings
