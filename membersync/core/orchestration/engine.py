"""Orchestration engine: runs work items through pipelines under a shared
concurrency gate, single-flight token refresh and outcome ledger.

Every piece of mutable run state (gate, token holder, refresh coordinator,
requeue buffer, ledger) is a field of one :class:`Orchestrator` built per
run, so two runs in the same process never share hidden globals.
"""
from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Optional

from ..brivo.exceptions import TokenExpiredError
from ..tokens import TokenHolder, TokenRefreshError
from .gate import ConcurrencyGate
from .ledger import OutcomeLedger, RunSummary
from .pipeline import StepFailed, WorkItem
from .refresh import RefreshCoordinator
from .requeue import RequeueBuffer

logger = logging.getLogger(__name__)

DEFAULT_MAX_REQUEUES = 3


class RunAborted(Exception):
    """A run-level failure stopped the driver; the ledger holds partial results."""

    def __init__(self, cause: BaseException, summary: RunSummary):
        self.cause = cause
        self.summary = summary
        super().__init__(f"Run aborted: {cause}")


class Orchestrator:
    """Executes work items concurrently with per-entity failure isolation.

    Scheduling: one task per work item on a thread pool. Tasks are unbounded
    in number; simultaneous outbound calls are bounded by ``gate``, which the
    remote clients acquire once per call.

    Args:
        tokens: Token holder of the access-control system
        gate: Concurrency gate shared by every outbound call of the run
        ledger: Outcome ledger (a fresh one is created when omitted)
        max_workers: Thread pool size (defaults to four times the gate capacity)
        max_requeues: Transient-auth rejections tolerated per item before it
            is recorded as failed
    """

    def __init__(
        self,
        tokens: TokenHolder,
        gate: ConcurrencyGate,
        ledger: Optional[OutcomeLedger] = None,
        max_workers: Optional[int] = None,
        max_requeues: int = DEFAULT_MAX_REQUEUES,
        on_fatal: Optional[Callable[[TokenRefreshError], None]] = None,
    ):
        self.tokens = tokens
        self.gate = gate
        self.ledger = ledger if ledger is not None else OutcomeLedger()
        self.max_requeues = max_requeues
        self.buffer = RequeueBuffer()
        self.coordinator = RefreshCoordinator(tokens, self.buffer, self._dispatch)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers or gate.capacity * 4,
            thread_name_prefix="membersync",
        )
        self._on_fatal = on_fatal
        self._pending = 0
        self._idle = threading.Condition()
        self._halted = threading.Event()
        self._halt_lock = threading.Lock()
        self.fatal_error: Optional[TokenRefreshError] = None

    @property
    def halted(self) -> bool:
        return self._halted.is_set()

    # ─────────────────────────────────────────────────────────────────────
    # Submission
    # ─────────────────────────────────────────────────────────────────────

    def submit(self, item: WorkItem) -> bool:
        """Route one item to the pipeline, or to the requeue buffer while a
        refresh is in flight.

        Returns:
            False when the run has been halted and the item was not accepted
        """
        if self.halted:
            return False
        if not self.coordinator.route(item):
            self._dispatch(item)
        return True

    def run(self, items: Iterable[WorkItem]) -> RunSummary:
        """Submit every item, wait for all of them to settle and summarize.

        Raises:
            RunAborted: Token refresh failed; remaining items were recorded
                as failed and the summary is attached to the exception
        """
        try:
            for item in items:
                if not self.submit(item):
                    self.ledger.failure(item.key, f"Not processed: {self.fatal_error}", item.pipeline.name)
            self.wait()
        finally:
            self.shutdown()
        summary = self.ledger.summarize()
        if self.fatal_error is not None:
            raise RunAborted(self.fatal_error, summary)
        return summary

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until no task is running or queued.

        Returns:
            True if the orchestrator went idle, False on timeout
        """
        with self._idle:
            return self._idle.wait_for(lambda: self._pending == 0, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def _dispatch(self, item: WorkItem) -> None:
        with self._idle:
            self._pending += 1
        try:
            self._executor.submit(self._run_task, item)
        except RuntimeError:
            self._task_done()
            raise

    def _task_done(self) -> None:
        with self._idle:
            self._pending -= 1
            if self._pending == 0:
                self._idle.notify_all()

    # ─────────────────────────────────────────────────────────────────────
    # Execution
    # ─────────────────────────────────────────────────────────────────────

    def _run_task(self, item: WorkItem) -> None:
        try:
            self.execute(item)
        except TokenRefreshError as exc:
            self.halt(exc)
            if self.ledger.get(item.key) is None:
                self.ledger.failure(item.key, f"Not processed: {exc}", item.pipeline.name)
        finally:
            self._task_done()

    def execute(self, item: WorkItem) -> None:
        """Run every step of the item's pipeline in order, in the calling thread.

        Outcomes:
        - all steps succeed: success recorded
        - a step is rejected with an expired token: item deferred, nothing
          recorded (the replay records the outcome)
        - any other error: failure recorded, later steps skipped, completed
          steps left in place

        Raises:
            TokenRefreshError: The shared token could not be refreshed
        """
        state: dict = {}
        label = item.pipeline.describe(item) or item.key
        for step in item.pipeline.steps():
            self.coordinator.ensure_fresh()
            try:
                step.run(item, state)
            except TokenExpiredError as exc:
                self._defer(item, step.label, exc)
                return
            except TokenRefreshError:
                raise
            except Exception as exc:
                failure = StepFailed(step, exc)
                logger.error(f"[{item.pipeline.name}] {label} failed at {failure}")
                self.ledger.failure(item.key, str(failure), item.pipeline.name)
                return
        logger.info(f"[{item.pipeline.name}] {label} processed")
        self.ledger.success(item.key, item.pipeline.name)

    def _defer(self, item: WorkItem, step_label: str, exc: TokenExpiredError) -> None:
        if item.requeues >= self.max_requeues:
            self.ledger.failure(
                item.key,
                f"{step_label}: access token rejected after {item.requeues} refresh(es)",
                item.pipeline.name,
            )
            return
        item.requeues += 1
        logger.info(f"[{item.pipeline.name}] {item.key} deferred at {step_label}: access token expired")
        self.coordinator.defer(item, exc.generation)

    def halt(self, exc: TokenRefreshError) -> None:
        """Stop accepting work and fail everything parked in the buffer.

        Called by tasks whose refresh failed, and by callers outside the
        pipelines (access events) that share this orchestrator's coordinator.
        Idempotent; only the first call notifies ``on_fatal``.
        """
        with self._halt_lock:
            first = not self._halted.is_set()
            if first:
                self.fatal_error = exc
                self._halted.set()
        for entry in self.buffer.drain_all():
            self.ledger.failure(entry.item.key, f"Not processed: {exc}", entry.item.pipeline.name)
        if first:
            logger.critical(f"Halting run: {exc}")
            if self._on_fatal is not None:
                self._on_fatal(exc)
