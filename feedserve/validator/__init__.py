"""Feed validation: structural checks, sweeps and history."""

from .models import PerformanceMetrics, SweepReport, ValidationResult
from .monitor import SweepTarget, ValidationMonitor
from .validator import FeedValidator

__all__ = [
    "FeedValidator",
    "PerformanceMetrics",
    "SweepReport",
    "SweepTarget",
    "ValidationMonitor",
    "ValidationResult",
]
