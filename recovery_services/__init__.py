"""
recovery_services -- Stateful services over the pure engines.

Responsibility:
    The canonical reconciler (the only writer of units, events and sales
    summaries), per-trgid locking, the read-only metrics aggregator and the
    expected-fee reference used by the variance report.

Architecture position:
    Services -- may import recovery_engines, recovery_kernel,
    recovery_config and recovery_ingestion adapters.  Engines and the
    kernel must never import from here.
"""

from recovery_services.expected_fees import ExpectedFeeReference
from recovery_services.locks import KeyedLockRegistry, default_lock_registry
from recovery_services.metrics import (
    ChannelBreakdown,
    ChannelTotals,
    FeeBreakdown,
    FunnelStage,
    InboundSummary,
    MetricsAggregator,
    TrendPoint,
    UnitVariance,
    VarianceReport,
)
from recovery_services.reconciler import BatchStats, CanonicalReconciler, UploadContext

__all__ = [
    "BatchStats",
    "CanonicalReconciler",
    "ChannelBreakdown",
    "ChannelTotals",
    "ExpectedFeeReference",
    "FeeBreakdown",
    "FunnelStage",
    "InboundSummary",
    "KeyedLockRegistry",
    "MetricsAggregator",
    "TrendPoint",
    "UnitVariance",
    "UploadContext",
    "VarianceReport",
    "default_lock_registry",
]
