import logging

from flask import jsonify
from pymongo.errors import DuplicateKeyError, PyMongoError

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    """Base error carrying the HTTP status the API answers with."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CatalogError):
    status_code = 404


class ValidationFailure(CatalogError):
    status_code = 400


class Unauthorized(CatalogError):
    status_code = 401


class Conflict(CatalogError):
    status_code = 409


class InternalFailure(CatalogError):
    status_code = 500


def register_error_handlers(app):
    """
    Translate catalog and store errors into JSON error payloads.

    Args:
        app (Flask): Application to register the handlers on.
    """

    @app.errorhandler(CatalogError)
    def handle_catalog_error(error: CatalogError):
        if error.status_code >= 500:
            logger.error("Request failed: %s", error.message)
        return jsonify({"error": error.message}), error.status_code

    @app.errorhandler(DuplicateKeyError)
    def handle_duplicate_key(error: DuplicateKeyError):
        logger.warning("Duplicate key rejected: %s", error)
        return jsonify({"error": "Resource already exists"}), Conflict.status_code

    @app.errorhandler(PyMongoError)
    def handle_store_error(error: PyMongoError):
        logger.exception("Store failure")
        return jsonify({"error": "Store unavailable"}), InternalFailure.status_code

    @app.errorhandler(404)
    def handle_unknown_route(error):
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(405)
    def handle_bad_method(error):
        return jsonify({"error": "Method not allowed"}), 405
