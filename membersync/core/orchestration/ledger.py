"""Outcome ledger: concurrency-safe per-entity results and the run report."""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable, Optional


class Status(str, Enum):
    SUCCESS = "success"
    FAILED = "failed"


@dataclass(frozen=True)
class OutcomeRecord:
    key: str
    status: Status
    reason: str = ""
    pipeline: str = ""


@dataclass
class RunSummary:
    success_count: int = 0
    failures: dict[str, str] = field(default_factory=dict)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    def render(self, noun: str = "Users", verb: str = "Created") -> str:
        """Plain-text report, one failure per line."""
        lines = [
            "---------- OUTPUT LOG ----------",
            f"{noun} {verb} Successfully: {self.success_count}",
            f"{noun} Failed: {self.failure_count}",
        ]
        for key, reason in sorted(self.failures.items()):
            lines.append(f"External ID: {key} Reason: {reason}")
        return "\n".join(lines) + "\n"


class OutcomeLedger:
    """Append-only record of terminal outcomes, keyed by entity.

    The last write for a key wins, so an entity replayed after a requeue
    is still reported exactly once.

    Args:
        listener: Optional callback invoked with each new record (outside the lock)
    """

    def __init__(self, listener: Optional[Callable[[OutcomeRecord], None]] = None):
        self._records: dict[str, OutcomeRecord] = {}
        self._lock = threading.Lock()
        self._listener = listener

    def record(self, key: str, status: Status, reason: str = "", pipeline: str = "") -> OutcomeRecord:
        entry = OutcomeRecord(key, status, reason, pipeline)
        with self._lock:
            self._records[key] = entry
        if self._listener is not None:
            self._listener(entry)
        return entry

    def success(self, key: str, pipeline: str = "") -> OutcomeRecord:
        return self.record(key, Status.SUCCESS, pipeline=pipeline)

    def failure(self, key: str, reason: str, pipeline: str = "") -> OutcomeRecord:
        return self.record(key, Status.FAILED, reason, pipeline)

    def get(self, key: str) -> Optional[OutcomeRecord]:
        with self._lock:
            return self._records.get(key)

    def records(self) -> list[OutcomeRecord]:
        with self._lock:
            return list(self._records.values())

    def __len__(self) -> int:
        with self._lock:
            return len(self._records)

    def summarize(self) -> RunSummary:
        summary = RunSummary()
        for entry in self.records():
            if entry.status is Status.SUCCESS:
                summary.success_count += 1
            else:
                summary.failures[entry.key] = entry.reason
        return summary

    def write_report(self, path: Path, noun: str = "Users", verb: str = "Created") -> Path:
        """Write the plain-text run summary once at the end of a run."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.summarize().render(noun, verb), encoding="utf-8")
        return path
