"""Health check endpoints."""
from flask import Blueprint, current_app

bp = Blueprint("health", __name__)


@bp.route("/health")
def health_check():
    """Basic health check endpoint."""
    return ("ok", 200, {"Content-Type": "text/plain"})


@bp.route("/ready")
def readiness_check():
    """Ready while webhook events can still be processed.

    Reports not ready once the Brivo token could not be refreshed.
    """
    dispatcher = current_app.config.get("DISPATCHER")
    if dispatcher is not None and not dispatcher.available:
        return ("not ready: Brivo authentication failed", 503, {"Content-Type": "text/plain"})
    return ("ready", 200, {"Content-Type": "text/plain"})
