"""Longitudinal stability monitoring of the aggregate score."""
from __future__ import annotations

from trust_guard.monitor.stability import (
    MeasurementLog,
    StabilityAnalysis,
    StabilityCheck,
    StabilityMeasurement,
    StabilityMilestone,
    StabilityMonitor,
    analyze_stability,
)

__all__ = [
    "MeasurementLog",
    "StabilityAnalysis",
    "StabilityCheck",
    "StabilityMeasurement",
    "StabilityMilestone",
    "StabilityMonitor",
    "analyze_stability",
]
