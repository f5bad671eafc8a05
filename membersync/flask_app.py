"""Flask application factory and bootstrap.

This module provides the create_app() factory function for the webhook
server: MINDBODY client events, optional Brivo access events, health
checks and JSON error handlers.
"""
from __future__ import annotations
import atexit
from typing import Optional

import redis  # type: ignore[import-untyped]
from flask import Flask
from redis.exceptions import RedisError  # type: ignore[import-untyped]
from werkzeug.middleware.proxy_fix import ProxyFix

from membersync import audit
from membersync.config import AppConfig, load_settings
from membersync.core.arrivals import ArrivalService, RedisArrivalStore
from membersync.core.events import EventDispatcher
from membersync.core.runtime import build_runtime


# ─────────────────────────────────────────────────────────────────────────────
# Application Factory
# ─────────────────────────────────────────────────────────────────────────────
def create_app(cfg: Optional[AppConfig] = None, redis_client: Optional[redis.Redis] = None) -> Flask:
    """Create and configure Flask application.

    Args:
        cfg: Settings (loaded from the environment when omitted)
        redis_client: Redis connection for arrival tracking (built from
            ``cfg.redis_url`` when omitted)
    """
    cfg = cfg or load_settings()
    audit.configure(cfg.audit_dir)

    app = Flask(__name__)
    app.config["APP_CONFIG"] = cfg
    app.config["DEMO_MODE"] = cfg.demo_mode
    # Webhook bodies are small JSON documents
    app.config["MAX_CONTENT_LENGTH"] = 1024 * 1024

    # Trust X-Forwarded-* headers from the reverse proxy
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)  # type: ignore

    runtime = build_runtime(cfg)
    dispatcher = EventDispatcher(runtime)
    app.config["RUNTIME"] = runtime
    app.config["DISPATCHER"] = dispatcher
    atexit.register(dispatcher.close)

    from membersync.api import errors, health, webhooks

    app.register_blueprint(health.bp)
    app.register_blueprint(webhooks.bp, url_prefix="/webhooks")

    if redis_client is None and cfg.arrivals_enabled:
        redis_client = _connect_redis(cfg.redis_url)
    if redis_client is not None:
        store = RedisArrivalStore(redis_client, window_minutes=cfg.arrival_window_minutes)
        app.config["ARRIVALS"] = ArrivalService(
            runtime.credentials,
            runtime.mindbody,
            store,
            dispatcher.orchestrator.coordinator,
            location_id=cfg.mindbody_location_id,
            facility_code=cfg.brivo_facility_code,
            halt=dispatcher.orchestrator.halt,
        )
        app.register_blueprint(webhooks.access_bp, url_prefix="/webhooks/brivo")
        print("[flask_app] Brivo access events registered at /webhooks/brivo/access")

    errors.register_error_handlers(app)

    mode_label = "DEMO" if cfg.demo_mode else "PRODUCTION"
    print(f"[flask_app] Mode={mode_label}")
    print("[flask_app] MINDBODY webhooks registered at /webhooks/mindbody")

    if cfg.demo_mode:
        print("[flask_app] WARNING: Demo mode active - do not deploy with demo credentials")

    return app


def _connect_redis(redis_url: str) -> redis.Redis:
    client = redis.Redis.from_url(redis_url)
    try:
        client.ping()
    except RedisError as exc:
        raise RuntimeError(f"Failed to connect to Redis at {redis_url!r}") from exc
    return client
