"""Persistent models for the recovery kernel."""

from recovery_kernel.models.file_upload import FileUpload
from recovery_kernel.models.lifecycle_event import LifecycleEvent
from recovery_kernel.models.sales_metric import SalesMetric
from recovery_kernel.models.unit import MERGED_ATTRIBUTES, UnitCanonical

__all__ = [
    "FileUpload",
    "LifecycleEvent",
    "MERGED_ATTRIBUTES",
    "SalesMetric",
    "UnitCanonical",
]
