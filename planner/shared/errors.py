"""Error taxonomy shared by the planning services and routes."""

from __future__ import annotations

from typing import Any


class PlanningError(Exception):
    """Base class for caller-visible failures.

    ``context`` holds the identifying parameters of the failed operation
    (trainer/date of a conflict, the enrollment that was not eligible, ...).
    """

    kind = "internal"
    status_code = 500

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {k: _jsonable(v) for k, v in context.items()}

    def to_dict(self) -> dict:
        return {
            "ok": False,
            "kind": self.kind,
            "error": self.message,
            "context": self.context,
        }


class NotFoundError(PlanningError, LookupError):
    kind = "not_found"
    status_code = 404


class InvalidRequestError(PlanningError, ValueError):
    kind = "invalid_request"
    status_code = 400


class ConflictError(PlanningError):
    kind = "conflict"
    status_code = 409


class InternalError(PlanningError):
    kind = "internal"
    status_code = 500


def _jsonable(value: Any) -> Any:
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if isinstance(value, (list, tuple, set)):
        return [_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): _jsonable(v) for k, v in value.items()}
    return str(value)
