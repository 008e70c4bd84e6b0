"""JSON error bodies (``{error, message}``) for the HTTP surface."""

from __future__ import annotations

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from catalog.errors import CatalogError, ConfigurationError, DatastoreError, RemoteAPIError

logger = logging.getLogger(__name__)


def error_response(status: int, error: str, message: str):
    return jsonify({"error": error, "message": message}), status


def register_error_handlers(app) -> None:
    @app.errorhandler(HTTPException)
    def _http_error(exc: HTTPException):
        return error_response(exc.code or 500, exc.name, exc.description or exc.name)

    @app.errorhandler(ConfigurationError)
    def _configuration_error(exc: ConfigurationError):
        logger.error("Configuration error: %s", exc)
        return error_response(500, "Configuration error", str(exc))

    @app.errorhandler(RemoteAPIError)
    def _remote_error(exc: RemoteAPIError):
        logger.error("Spotify request failed: %s", exc)
        return error_response(502, "Upstream error", str(exc))

    @app.errorhandler(DatastoreError)
    def _datastore_error(exc: DatastoreError):
        logger.error("Datastore error: %s", exc)
        return error_response(500, "Datastore error", str(exc))

    @app.errorhandler(CatalogError)
    def _catalog_error(exc: CatalogError):
        logger.error("Catalog error: %s", exc)
        return error_response(500, "Internal error", str(exc))
