"""Concurrent, rate-limited, refresh-coordinated execution of pipelines."""
from .engine import DEFAULT_MAX_REQUEUES, Orchestrator, RunAborted
from .gate import ConcurrencyGate
from .ledger import OutcomeLedger, OutcomeRecord, RunSummary, Status
from .pipeline import Pipeline, Step, StepFailed, WorkItem
from .refresh import RefreshCoordinator
from .requeue import DeferredItem, RequeueBuffer

__all__ = [
    "DEFAULT_MAX_REQUEUES",
    "Orchestrator",
    "RunAborted",
    "ConcurrencyGate",
    "OutcomeLedger",
    "OutcomeRecord",
    "RunSummary",
    "Status",
    "Pipeline",
    "Step",
    "StepFailed",
    "WorkItem",
    "RefreshCoordinator",
    "DeferredItem",
    "RequeueBuffer",
]
