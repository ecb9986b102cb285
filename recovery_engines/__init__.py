"""
Module: recovery_engines
Responsibility:
    Package entrypoint that re-exports the pure calculation engines: fiscal
    calendar, channel dimensions, fee rules, and fee variance.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import recovery_kernel.domain (and sibling engine modules).
    MUST NOT import recovery_kernel.db/models, recovery_services,
    recovery_ingestion, or recovery_config.

Invariants enforced:
    - Purity: engines never call ``datetime.now()`` or ``date.today()``.
    - Decimal-only arithmetic for money.
    - Determinism: identical inputs always produce identical outputs.
    - Totality: classification functions default instead of raising.
"""

from recovery_engines.dimensions import (
    ChannelRules,
    effective_retail,
    sales_channel,
    walmart_channel,
)
from recovery_engines.fees import (
    EligibilityRules,
    FeeResult,
    FeeRuleEngine,
    FeeSchedule,
    FeeSource,
    MarketplaceRate,
    SaleRecord,
    is_b2c_eligible,
    is_electronics,
    net_proceeds,
)
from recovery_engines.fiscal_calendar import (
    FiscalPosition,
    fiscal_day,
    fiscal_position,
    fiscal_quarter,
    fiscal_week,
    fiscal_year,
    week_date_range,
    week_label,
    week_start,
)
from recovery_engines.variance import (
    FeeVariance,
    FeeVarianceCalculator,
    FeeVarianceStatus,
    percent_difference,
)

__all__ = [
    "ChannelRules",
    "EligibilityRules",
    "FeeResult",
    "FeeRuleEngine",
    "FeeSchedule",
    "FeeSource",
    "FeeVariance",
    "FeeVarianceCalculator",
    "FeeVarianceStatus",
    "FiscalPosition",
    "MarketplaceRate",
    "SaleRecord",
    "effective_retail",
    "fiscal_day",
    "fiscal_position",
    "fiscal_quarter",
    "fiscal_week",
    "fiscal_year",
    "is_b2c_eligible",
    "is_electronics",
    "net_proceeds",
    "percent_difference",
    "sales_channel",
    "walmart_channel",
    "week_date_range",
    "week_label",
    "week_start",
]
