"""Webhook receivers: MINDBODY client events and Brivo access events."""
from __future__ import annotations

import hmac
import logging

from flask import Blueprint, abort, current_app, jsonify, request

from membersync.audit import safe_log_sync_event
from membersync.core.events import InvalidEventError, MindbodyEvent
from .signatures import SIGNATURE_HEADER, verify_signature

logger = logging.getLogger(__name__)

bp = Blueprint("webhooks", __name__)
access_bp = Blueprint("access", __name__)

BRIVO_SECRET_HEADER = "X-Brivo-Event-Secret"


@bp.route("/mindbody", methods=["HEAD"])
def mindbody_validation():
    """MINDBODY validates a subscription URL with a HEAD request before activating it."""
    return ("", 200)


@bp.route("/mindbody", methods=["POST"])
def mindbody_event():
    """Receive one MINDBODY client event.

    Responds 204 once the event is verified and queued; processing happens
    in the background and its outcome goes to the audit trail.

    Status codes:
        204: Event accepted (or ignored as unsupported)
        400: Body is not a MINDBODY event
        401: Missing or invalid signature
        503: Processing halted (Brivo authentication failed)
    """
    cfg = current_app.config["APP_CONFIG"]
    dispatcher = current_app.config["DISPATCHER"]
    body = request.get_data(cache=True)

    if not verify_signature(request.headers.get(SIGNATURE_HEADER), cfg.mindbody_webhook_key, body):
        logger.warning("Rejected MINDBODY webhook with invalid signature")
        safe_log_sync_event("webhook_rejected", "mindbody", source="webhook",
                            details={"reason": "invalid signature"}, success=False)
        abort(401, description="Invalid webhook signature")

    if not dispatcher.available:
        abort(503, description="Event processing halted: Brivo authentication failed")

    try:
        event = MindbodyEvent.from_payload(request.get_json(silent=True))
    except InvalidEventError as exc:
        abort(400, description=str(exc))

    dispatcher.dispatch(event)
    return ("", 204)


@access_bp.route("/access", methods=["POST"])
def brivo_access_event():
    """Receive a Brivo access event and log a MINDBODY arrival."""
    cfg = current_app.config["APP_CONFIG"]
    arrivals = current_app.config["ARRIVALS"]

    provided = request.headers.get(BRIVO_SECRET_HEADER, "")
    if not cfg.brivo_event_secret or not hmac.compare_digest(provided, cfg.brivo_event_secret):
        abort(401, description="Invalid event secret")

    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        abort(400, description="Event body must be a JSON object")

    outcome = arrivals.handle(payload)
    return jsonify({"outcome": outcome.value}), 200
