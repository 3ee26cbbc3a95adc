"""JSON error responses for domain exceptions and anything unexpected."""
from __future__ import annotations

import logging

from flask import Flask, jsonify, request
from mysql.connector import errors as mysql_errors
from werkzeug.exceptions import HTTPException

from .core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
    (ExternalServiceError, 502),
)


def status_for(exc: DomainError) -> int:
    for cls, status in _STATUS:
        if isinstance(exc, cls):
            return status
    return 400


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        status = status_for(exc)
        body = {"error": str(exc)}
        if isinstance(exc, ConflictError):
            body.update(exc.payload)
        if isinstance(exc, ExternalServiceError):
            logger.error("%s %s: %s", request.method, request.path, exc)
        return jsonify(body), status

    @app.errorhandler(mysql_errors.IntegrityError)
    def handle_integrity_error(exc: mysql_errors.IntegrityError):
        logger.warning("Integrity error on %s %s: %s", request.method, request.path, exc)
        return jsonify({"error": "Conflicts with an existing record", "details": exc.msg}), 409

    @app.errorhandler(404)
    def handle_not_found(_exc):
        return jsonify({"error": f"Cannot {request.method} {request.path}"}), 404

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            return jsonify({"error": exc.description or exc.name}), exc.code
        logger.exception("Unhandled error on %s %s", request.method, request.path)
        return jsonify({"error": "Internal Server Error", "details": str(exc)}), 500
