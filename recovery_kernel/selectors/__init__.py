"""Read-only selectors for reporting queries."""

from recovery_kernel.selectors.base import BaseSelector
from recovery_kernel.selectors.filters import UnitFilter
from recovery_kernel.selectors.sales_selector import (
    FileUploadDTO,
    FileUploadSelector,
    SalesMetricDTO,
    SalesMetricSelector,
)
from recovery_kernel.selectors.unit_selector import (
    LifecycleEventDTO,
    LifecycleEventSelector,
    UnitDTO,
    UnitSelector,
)

__all__ = [
    "BaseSelector",
    "FileUploadDTO",
    "FileUploadSelector",
    "LifecycleEventDTO",
    "LifecycleEventSelector",
    "SalesMetricDTO",
    "SalesMetricSelector",
    "UnitDTO",
    "UnitFilter",
    "UnitSelector",
]
