"""Pipeline primitives: work items, steps and step failures."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Optional


@dataclass(eq=False)
class WorkItem:
    """One entity that must pass through a pipeline.

    Carries everything needed to restart the pipeline from its first step;
    no partial progress is kept across a requeue.

    Attributes:
        key: Entity key reported in the outcome ledger (MINDBODY barcode id)
        payload: Pipeline input (e.g. a :class:`~membersync.core.models.Member`)
        pipeline: Pipeline that processes this item
        requeues: How many times the item was deferred for a token refresh
        context: Extra hints from the driver (e.g. a known Brivo user id)
    """
    key: str
    payload: Any
    pipeline: "Pipeline"
    requeues: int = 0
    context: dict = field(default_factory=dict)


StepFn = Callable[[WorkItem, dict], None]


@dataclass(frozen=True)
class Step:
    """One stage of a pipeline.

    ``run`` receives the work item and a per-invocation state dict that later
    steps read from (e.g. the user id resolved by the first step).
    """
    name: str
    label: str
    run: StepFn


class StepFailed(Exception):
    """A step failed with a permanent (non-auth) error."""

    def __init__(self, step: Step, cause: BaseException):
        self.step = step
        self.cause = cause
        super().__init__(f"{step.label}: {cause}")


class Pipeline:
    """Ordered sequence of dependent remote operations for one entity.

    Subclasses set ``name`` and implement :meth:`steps`. The engine runs the
    steps in order; there is no branching and no rollback.
    """

    name = "pipeline"

    def steps(self) -> list[Step]:
        raise NotImplementedError

    def describe(self, item: WorkItem) -> Optional[str]:
        """Optional human-readable label used in log lines."""
        return None
