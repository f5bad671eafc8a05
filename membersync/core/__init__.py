"""Core Business Logic Module

Sync logic independent of the HTTP framework.

Module Structure:
    - brivo/          : Brivo OnAir API client (users, credentials)
    - mindbody/       : MINDBODY Public API client (clients, arrivals)
    - orchestration/  : Concurrency gate, single-flight refresh, requeue
                        buffer, outcome ledger and the engine running them
    - pipelines.py    : Provision / deactivate / cleanup step sequences
    - drivers.py      : migrate, sync and clean bulk runs
    - events.py       : MINDBODY webhook event dispatch
    - arrivals.py     : Brivo access events → MINDBODY arrivals
    - transformer.py  : MINDBODY ⇔ Brivo mapping and id validity
    - runtime.py      : Builds clients, services and pipelines from settings

Usage Pattern:
    These modules are NOT auto-imported; import explicitly when needed:
        from membersync.core.runtime import build_runtime
        from membersync.core.drivers import sync_members
"""
