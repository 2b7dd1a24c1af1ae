from flask import jsonify, current_app
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
import logging

from utils.exceptions import AuthError, StorageError


def error_response(error: str, message: str, status: int, details: dict | None = None):
    payload = {"error": error, "message": message, "status": status}
    if details:
        payload["details"] = details
    return jsonify(payload), status


def register_error_handlers(app):
    # 400 Bad Request (generic)
    @app.errorhandler(400)
    def bad_request(e):
        if current_app and current_app.debug:
            logging.exception("Unhandled exception", exc_info=e)
        message = getattr(e, "description", "Bad request")
        return error_response("BAD_REQUEST", message, 400)

    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        return error_response("NOT_FOUND", "Resource not found", 404)

    # Marshmallow validation errors map to 400, before any I/O happened
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        # err.messages contains field-level details
        return error_response("VALIDATION_ERROR", "Invalid input", 400, details=err.messages)

    # Authentication failures: fixed messages, no token or password material
    @app.errorhandler(AuthError)
    def handle_auth_error(err: AuthError):
        return error_response(err.error, err.message, err.status_code)

    # Storage failures are already rolled back and logged by the store
    @app.errorhandler(StorageError)
    def handle_storage_error(err: StorageError):
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500)

    # Werkzeug HTTPExceptions map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        codes = {401: "UNAUTHORIZED", 403: "FORBIDDEN", 405: "METHOD_NOT_ALLOWED"}
        return error_response(codes.get(err.code, "BAD_REQUEST"), err.description, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        # In dev, include exception details to speed up debugging
        details = None
        logging.exception("Unhandled exception", exc_info=err)
        if current_app and current_app.debug:
            details = {"type": err.__class__.__name__}
        return error_response("INTERNAL_ERROR", "An unexpected error occurred", 500, details=details)
