from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import wraps
from typing import Any

from flask import jsonify

from ..common.serialization import to_jsonable
from ..core.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DatabaseError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (ConflictError, 409),
)


def api_response(data: Any = None, *, message: str = "OK", status: int = 200, success: bool | None = None, **extra):
    body = {
        "success": status < 400 if success is None else success,
        "message": message,
        "data": to_jsonable(data),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    body.update(to_jsonable(extra))
    return jsonify(body), status


def error_response(message: str, status: int, **extra):
    return api_response(None, message=message, status=status, success=False, **extra)


def handle_api_errors(view):
    """Map domain exceptions raised by a view to JSON error responses."""

    @wraps(view)
    def wrapper(*args, **kwargs):
        try:
            return view(*args, **kwargs)
        except DatabaseError as e:
            logger.error("Database error in %s: %s", view.__name__, e)
            return error_response("A database error occurred", 500)
        except tuple(cls for cls, _ in _STATUS_BY_ERROR) as e:
            status = next(code for cls, code in _STATUS_BY_ERROR if isinstance(e, cls))
            errors = getattr(e, "errors", None)
            return error_response(str(e), status, **({"errors": errors} if errors else {}))
        except Exception:
            logger.exception("Unhandled error in %s", view.__name__)
            return error_response("Internal server error", 500)

    return wrapper
