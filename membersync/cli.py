"""Command-line entry point: bulk runs, cleanup, webhook server and audit check.

Usage:
    membersync migrate [--limit N]
    membersync sync [--limit N]
    membersync clean [--scope members|all] [--yes]
    membersync serve [--port PORT]
    membersync verify-audit
"""
from __future__ import annotations
import argparse
import logging
import sys
from typing import Optional

from membersync import audit
from membersync.config import load_settings
from membersync.core.brivo import BrivoError
from membersync.core.drivers import CLEAN_SCOPES, clean_brivo, migrate_members, sync_members
from membersync.core.mindbody import MindbodyError
from membersync.core.orchestration import RunAborted, RunSummary
from membersync.core.tokens import TokenRefreshError

CLEAN_CHOICES = {"1": "members", "2": "all"}


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def _prompt_clean_scope() -> Optional[str]:
    """Ask which users to delete; None when the operator cancels."""
    print("This will DELETE Brivo users and their credentials.")
    print("  1) Users of the member group")
    print("  2) All Brivo users")
    choice = input("Select 1 or 2 (anything else cancels): ").strip()
    scope = CLEAN_CHOICES.get(choice)
    if scope is None:
        return None
    confirm = input(f"Type 'yes' to delete {scope} users: ").strip().lower()
    return scope if confirm == "yes" else None


def _report(name: str, summary: RunSummary) -> int:
    print(f"[{name}] {summary.success_count} succeeded, {summary.failure_count} failed", file=sys.stderr)
    return 0 if summary.failure_count == 0 else 2


def main(argv: Optional[list[str]] = None) -> int:
    """Command-line entry point."""
    parser = argparse.ArgumentParser(prog="membersync", description="MINDBODY to Brivo membership sync")
    sub = parser.add_subparsers(dest="cmd")

    sm = sub.add_parser("migrate", help="Create Brivo users for every active MINDBODY client")
    sm.add_argument("--limit", type=int, default=None, help="Only fetch the first N clients")

    ss = sub.add_parser("sync", help="Create or update Brivo users for every MINDBODY client")
    ss.add_argument("--limit", type=int, default=None, help="Only fetch the first N clients")

    sc = sub.add_parser("clean", help="Delete Brivo users and their credentials")
    sc.add_argument("--scope", choices=CLEAN_SCOPES, default=None)
    sc.add_argument("--yes", action="store_true", help="Skip the confirmation prompt (requires --scope)")

    sv = sub.add_parser("serve", help="Run the webhook server (development server)")
    sv.add_argument("--host", default="0.0.0.0")
    sv.add_argument("--port", type=int, default=None)

    sub.add_parser("verify-audit", help="Verify audit log signatures")

    args = parser.parse_args(argv)

    if not args.cmd:
        parser.print_help()
        return 1

    cfg = load_settings()
    _configure_logging(cfg.debug)
    audit.configure(cfg.audit_dir)

    if args.cmd == "verify-audit":
        total, valid = audit.verify_audit_log()
        print(f"Audit log: {valid}/{total} events with valid signatures")
        return 0 if total == valid else 1

    if args.cmd == "serve":
        from membersync.flask_app import create_app
        app = create_app(cfg)
        app.run(host=args.host, port=args.port or cfg.port, threaded=True, debug=False)
        return 0

    from membersync.core.runtime import build_runtime
    runtime = build_runtime(cfg)

    try:
        if args.cmd == "migrate":
            return _report("migrate", migrate_members(runtime, limit=args.limit))
        if args.cmd == "sync":
            return _report("sync", sync_members(runtime, limit=args.limit))
        if args.cmd == "clean":
            if args.yes and not args.scope:
                parser.error("--yes requires --scope")
            scope = args.scope if args.yes else _prompt_clean_scope()
            if scope is None:
                print("[clean] Cancelled", file=sys.stderr)
                return 1
            return _report("clean", clean_brivo(runtime, scope=scope))
    except RunAborted as e:
        print(f"[{args.cmd}] {e}. Partial results written to the report.", file=sys.stderr)
        return 1
    except TokenRefreshError as e:
        print(f"[{args.cmd}] Error: {e}", file=sys.stderr)
        return 1
    except (BrivoError, MindbodyError) as e:
        print(f"[{args.cmd}] Error fetching records: {e}", file=sys.stderr)
        return 1

    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
