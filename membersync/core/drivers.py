"""Bulk drivers: migrate, sync and clean.

Each driver enumerates a source collection, drops entities that fail the
validity predicate before they reach a pipeline, runs the rest through one
:class:`Orchestrator` and writes the plain-text report once at the end,
also when the run is aborted by a token refresh failure.
"""
from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Iterable, Optional

from ..audit import safe_log_sync_event
from .models import Member
from .orchestration import RunAborted, RunSummary, WorkItem
from .pipelines import cleanup_key, provision_item
from .runtime import Runtime
from .transformer import is_valid_id

logger = logging.getLogger(__name__)

MIGRATE_REPORT = "migrate_output.log"
SYNC_REPORT = "sync_output.log"
CLEAN_REPORT = "clean_output.log"

CLEAN_SCOPES = ("members", "all")


def _valid_members(runtime: Runtime, records: Iterable[dict], active_only: bool) -> list[Member]:
    facility_code = runtime.config.brivo_facility_code
    members: dict[str, Member] = {}
    skipped = 0
    duplicates = 0
    for record in records:
        member = Member.from_api(record)
        if not is_valid_id(member.id, facility_code):
            skipped += 1
            continue
        if active_only and not member.is_active:
            continue
        # One work item per barcode id; the first record wins
        if member.id in members:
            duplicates += 1
            continue
        members[member.id] = member
    if skipped:
        logger.info(f"Skipped {skipped} client(s) with an invalid barcode id")
    if duplicates:
        logger.warning(f"Skipped {duplicates} duplicate client record(s)")
    return list(members.values())


def _run(runtime: Runtime, name: str, items: list[WorkItem], report: str, verb: str) -> RunSummary:
    orchestrator = runtime.orchestrator()
    ledger = orchestrator.ledger
    report_path = Path(runtime.config.report_dir) / report
    logger.info(f"[{name}] Processing {len(items)} item(s)")
    try:
        summary = orchestrator.run(items)
    except RunAborted as exc:
        ledger.write_report(report_path, verb=verb)
        safe_log_sync_event(
            "run_aborted",
            name,
            source="cli",
            details={"reason": str(exc.cause), "succeeded": exc.summary.success_count,
                     "failed": exc.summary.failure_count, "report": str(report_path)},
            success=False,
        )
        raise
    ledger.write_report(report_path, verb=verb)
    logger.info(
        f"[{name}] {summary.success_count} succeeded, {summary.failure_count} failed "
        f"(peak {runtime.gate.peak}/{runtime.gate.capacity} concurrent calls). See {report_path}"
    )
    safe_log_sync_event(
        "run_completed",
        name,
        source="cli",
        details={"succeeded": summary.success_count, "failed": summary.failure_count,
                 "refreshes": orchestrator.coordinator.refresh_count, "report": str(report_path)},
        success=summary.failure_count == 0,
    )
    return summary


def migrate_members(runtime: Runtime, limit: Optional[int] = None) -> RunSummary:
    """Provision every valid, active MINDBODY client as a new Brivo user.

    Raises:
        MindbodyAPIError: The client listing failed (nothing is processed)
        RunAborted: The Brivo token could not be refreshed mid-run
    """
    records = runtime.mindbody.list_clients(limit=limit)
    members = _valid_members(runtime, records, active_only=True)
    items = [provision_item(member, runtime.provision) for member in members]
    return _run(runtime, "migrate", items, MIGRATE_REPORT, verb="Created")


def sync_members(runtime: Runtime, limit: Optional[int] = None) -> RunSummary:
    """Reconcile every valid MINDBODY client with Brivo.

    MINDBODY clients and existing Brivo users are fetched concurrently;
    clients already linked to a Brivo user are updated in place, the others
    are created. Inactive clients end up suspended.
    """
    runtime.brivo_tokens.ensure_valid()
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="membersync-fetch") as pool:
        clients_future = pool.submit(runtime.mindbody.list_clients, limit)
        users_future = pool.submit(runtime.users.list_users)
        records = clients_future.result()
        brivo_users = users_future.result()

    known = {
        str(user["externalId"]): int(user["id"])
        for user in brivo_users
        if user.get("externalId") and user.get("id")
    }
    logger.info(f"[sync] {len(records)} MINDBODY client(s), {len(known)} linked Brivo user(s)")
    members = _valid_members(runtime, records, active_only=False)
    items = [provision_item(member, runtime.provision, brivo_id=known.get(member.id)) for member in members]
    return _run(runtime, "sync", items, SYNC_REPORT, verb="Synced")


def clean_brivo(runtime: Runtime, scope: str = "members") -> RunSummary:
    """Delete Brivo users and their barcode credentials.

    Args:
        scope: ``members`` (users of the member group) or ``all`` (every user)
    """
    if scope not in CLEAN_SCOPES:
        raise ValueError(f"Unknown clean scope '{scope}', expected one of {', '.join(CLEAN_SCOPES)}")
    runtime.brivo_tokens.ensure_valid()
    if scope == "members":
        users = runtime.users.list_group_users(runtime.config.brivo_member_group_id)
    else:
        users = runtime.users.list_users()
    items = [
        WorkItem(key=cleanup_key(user), payload=user, pipeline=runtime.cleanup)
        for user in users
        if user.get("id")
    ]
    return _run(runtime, "clean", items, CLEAN_REPORT, verb="Deleted")
