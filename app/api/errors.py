"""Error handlers for the application."""
from flask import jsonify
from werkzeug.exceptions import HTTPException

from app.core.exceptions import DirectoryError

_DEFAULT_FORBIDDEN = (
    "You don't have the permission to access the requested resource. "
    "It is either read-protected or not readable by the server."
)


def register_error_handlers(app):
    """Register JSON error handlers with the Flask app."""

    @app.errorhandler(400)
    def bad_request(error):
        """Handle 400 Bad Request errors."""
        return jsonify({"error": "Bad Request", "message": error.description}), 400

    @app.errorhandler(401)
    def unauthorized(error):
        """Handle 401 Unauthorized errors."""
        return jsonify({"error": "Unauthorized", "message": "Authentication required"}), 401

    @app.errorhandler(403)
    def forbidden(error):
        """Handle 403 Forbidden errors."""
        message = "Insufficient permissions"
        if error.description and error.description != _DEFAULT_FORBIDDEN:
            message = str(error.description)
        return jsonify({"error": "Forbidden", "message": message}), 403

    @app.errorhandler(404)
    def not_found(error):
        """Handle 404 Not Found errors."""
        return jsonify({"error": "Not Found", "message": "Resource not found"}), 404

    @app.errorhandler(405)
    def method_not_allowed(error):
        return jsonify({"error": "Method Not Allowed", "message": error.description}), 405

    @app.errorhandler(DirectoryError)
    def directory_error(error):
        """Directory failures surface as 502; the directory is never retried."""
        app.logger.error("Directory failure: %s", error)
        return jsonify({"error": "Bad Gateway", "message": "Directory request failed"}), 502

    @app.errorhandler(Exception)
    def handle_exception(error):
        """Handle uncaught exceptions."""
        if isinstance(error, HTTPException):
            return jsonify({"error": error.name, "message": error.description}), error.code

        app.logger.error("Unhandled exception: %s", error, exc_info=True)
        return jsonify({"error": "Internal Server Error", "message": "An unexpected error occurred"}), 500
