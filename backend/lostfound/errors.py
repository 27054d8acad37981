"""Error taxonomy shared by the matching, conversation and notification services.

Services raise these; the API layer turns them into ``{"error": message}``
responses with the matching status code.
"""
from __future__ import annotations

import logging

from flask import Flask, jsonify
from marshmallow import ValidationError

logger = logging.getLogger(__name__)


class CoreError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(CoreError):
    """A referenced item, user, conversation or message does not exist."""

    status_code = 404


class Forbidden(CoreError):
    """The actor is not a participant or owner."""

    status_code = 403


class Unauthorized(CoreError):
    status_code = 401


class InvalidOperation(CoreError):
    """Self-match, self-chat, same-type match, acting on a closed conversation..."""

    status_code = 400


class TransientStorageFailure(CoreError):
    status_code = 503


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CoreError)
    def _core_error(err: CoreError):
        if isinstance(err, TransientStorageFailure):
            logger.warning("storage failure surfaced to caller: %s", err.message)
        return jsonify({"error": err.message}), err.status_code

    @app.errorhandler(ValidationError)
    def _validation_error(err: ValidationError):
        return jsonify({"error": "Invalid request", "details": err.messages}), 400
