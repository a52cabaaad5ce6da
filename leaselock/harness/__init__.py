"""Contention harness: parallel workers proving the lease lock serializes counter updates."""

from .contention import ContentionHarness, default_groups
from .models import SharedCounter, StartGate, WorkerGroup, WorkerOutcome, WorkerResult
from .report import GroupReport, HarnessReport, find_overlaps

__all__ = [
    "ContentionHarness",
    "default_groups",
    "SharedCounter",
    "StartGate",
    "WorkerGroup",
    "WorkerOutcome",
    "WorkerResult",
    "GroupReport",
    "HarnessReport",
    "find_overlaps",
]
