"""Derived UPS state: classification, cycles, capacity, alerts and events."""

from .alerts import AlertEvaluator, AlertState, Thresholds
from .capacity import (
    CapacityEstimate,
    CapacityEstimator,
    battery_health_percent,
    estimate_capacity_ah,
    resolve_ups_watts,
)
from .classifier import UpsState, classify
from .cycles import CycleState, CycleTracker
from .events import EventLog, enrich_event, event_icon

__all__ = [
    "AlertEvaluator",
    "AlertState",
    "Thresholds",
    "CapacityEstimate",
    "CapacityEstimator",
    "battery_health_percent",
    "estimate_capacity_ah",
    "resolve_ups_watts",
    "UpsState",
    "classify",
    "CycleState",
    "CycleTracker",
    "EventLog",
    "enrich_event",
    "event_icon",
]
