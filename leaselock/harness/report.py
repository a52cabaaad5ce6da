"""Harness Result Reporting

Aggregates per-worker results into per-group reports: final counter value
against the expected value, outcome counts, and any overlapping critical
sections among workers that shared a resource.
"""

from dataclasses import dataclass, field
from itertools import combinations
from typing import Dict, Iterable, List, Tuple

from .models import SharedCounter, WorkerGroup, WorkerOutcome, WorkerResult


def find_overlaps(results: Iterable[WorkerResult]) -> List[Tuple[int, int]]:
    """
    Pairs of worker ids whose critical sections on the same resource overlapped.

    Intervals are half-open: one worker exiting at the instant another
    enters is not an overlap.
    """
    entered = [
        r for r in results
        if r.entered_at is not None and r.exited_at is not None
    ]
    overlaps = []
    for a, b in combinations(entered, 2):
        if a.resource != b.resource:
            continue
        if a.entered_at < b.exited_at and b.entered_at < a.exited_at:
            overlaps.append(tuple(sorted((a.worker_id, b.worker_id))))
    return sorted(overlaps)


@dataclass(frozen=True)
class GroupReport:
    name: str
    resource: str
    workers: int
    increment: int
    final_value: int
    results: Tuple[WorkerResult, ...]
    overlaps: Tuple[Tuple[int, int], ...] = ()

    @property
    def expected_value(self) -> int:
        return self.workers * self.increment

    @property
    def completed(self) -> int:
        return self._count(WorkerOutcome.COMPLETED)

    @property
    def not_acquired(self) -> int:
        return self._count(WorkerOutcome.NOT_ACQUIRED)

    @property
    def faults(self) -> int:
        return self._count(WorkerOutcome.STORE_FAULT) + self._count(WorkerOutcome.CRASHED)

    @property
    def consistent(self) -> bool:
        """True when every worker completed, no sections overlapped, and the total is exact."""
        return (
            self.completed == self.workers
            and not self.overlaps
            and self.final_value == self.expected_value
        )

    @property
    def serialized(self) -> bool:
        """
        True when the counter reflects exactly the workers that completed.

        Holds even if some workers gave up; a lost update would break it.
        """
        return not self.overlaps and self.final_value == self.completed * self.increment

    def _count(self, outcome: WorkerOutcome) -> int:
        return sum(1 for r in self.results if r.outcome == outcome)


@dataclass(frozen=True)
class HarnessReport:
    groups: Tuple[GroupReport, ...]
    elapsed_seconds: float
    metadata: Dict[str, object] = field(default_factory=dict)

    @property
    def consistent(self) -> bool:
        return all(g.consistent for g in self.groups)

    def group(self, name: str) -> GroupReport:
        for g in self.groups:
            if g.name == name:
                return g
        raise KeyError(name)

    @classmethod
    def build(
        cls,
        groups: Iterable[WorkerGroup],
        counters: Dict[str, SharedCounter],
        results: Iterable[WorkerResult],
        elapsed_seconds: float,
    ) -> "HarnessReport":
        results = list(results)
        reports = []
        for g in groups:
            group_results = tuple(sorted(
                (r for r in results if r.group == g.name),
                key=lambda r: r.worker_id,
            ))
            reports.append(GroupReport(
                name=g.name,
                resource=g.resource,
                workers=g.workers,
                increment=g.increment,
                final_value=counters[g.name].value,
                results=group_results,
                overlaps=tuple(find_overlaps(group_results)),
            ))
        return cls(groups=tuple(reports), elapsed_seconds=elapsed_seconds)

    def render(self) -> str:
        """Human-readable results table."""
        rule = "=" * 64
        lines = [rule, "  RESULTS", rule]
        for g in self.groups:
            status = "OK" if g.consistent else "MISMATCH"
            lines.append(
                f"  {g.name:<10} final={g.final_value:<6} "
                f"expected={g.expected_value} ({g.workers} workers x {g.increment})  [{status}]"
            )
            lines.append(
                f"  {'':<10} completed={g.completed} not_acquired={g.not_acquired} faults={g.faults}"
            )
            for a, b in g.overlaps:
                lines.append(f"  {'':<10} overlapping critical sections: workers {a} and {b}")
        lines.append(f"  elapsed: {self.elapsed_seconds:.2f}s")
        lines.append(rule)
        return "\n".join(lines)
