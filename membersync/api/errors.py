"""Error handlers for the application (JSON bodies only)."""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from membersync.core.brivo import BrivoError
from membersync.core.mindbody import MindbodyError
from membersync.core.tokens import TokenRefreshError


def register_error_handlers(app):
    """Register error handlers with the Flask app."""

    @app.errorhandler(HTTPException)
    def http_error(error):
        """Render werkzeug HTTP errors (400, 401, 404, 405, 413...) as JSON."""
        return jsonify({"error": error.name, "message": error.description}), error.code

    @app.errorhandler(TokenRefreshError)
    def token_refresh_failed(error):
        app.logger.critical(f"{error}")
        return jsonify({"error": "Service Unavailable", "message": f"{error.system} authentication failed"}), 503

    @app.errorhandler(BrivoError)
    @app.errorhandler(MindbodyError)
    def upstream_error(error):
        app.logger.error(f"Upstream error: {error}")
        return jsonify({"error": "Bad Gateway", "message": str(error)}), 502

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        app.logger.error(f"Unhandled exception: {error}", exc_info=True)
        return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500
