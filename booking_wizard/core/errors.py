"""Error taxonomy for the booking wizard and the backend error normalizer"""
import json
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Union

from booking_wizard.core.enums import ErrorCategory

logger = logging.getLogger(__name__)

DEFAULT_BOOKING_ERROR = "Failed to create booking"


class WizardError(Exception):
    """Base class for errors raised by the wizard itself."""


class PreconditionError(WizardError):

    def __init__(self, message: str, redirect_to: str):
        super().__init__(message)
        self.message = message
        self.redirect_to = redirect_to


class VehicleNotFound(PreconditionError):
    pass


class VehicleUnavailable(PreconditionError):
    pass


class InvalidTransition(WizardError):
    pass


class SessionExpired(WizardError):
    pass


class BackendError(Exception):
    """Non-2xx response from the rental backend."""

    def __init__(self, status_code: int, body: Any = None, reason: str = ""):
        super().__init__(f"Backend responded with {status_code}")
        self.status_code = status_code
        self.body = body
        self.reason = reason


@dataclass
class BookingError:
    category: ErrorCategory
    message: str
    field_errors: Dict[str, str] = field(default_factory=dict)
    redirect_to: Optional[str] = None
    status_code: Optional[int] = None


def _decode(body: Union[str, bytes, dict, list, None]) -> Any:
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if isinstance(body, str):
        try:
            return json.loads(body)
        except ValueError:
            return body
    return body


def parse_backend_error(
    body: Union[str, bytes, dict, list, None],
    status_code: Optional[int] = None,
    reason: str = "",
) -> str:
    """Collapse a backend error body into one human readable message.

    Known shapes, checked in order:

    * ``{"fieldErrors": {"field": "msg"}}`` -> ``"field: msg, ..."``
    * ``{"errors": ["a", "b"]}`` -> ``"a, b"``
    * ``{"details": [{"message": "a"}, "b"]}`` -> ``"a, b"``
    * ``{"message": "..."}`` or ``{"error": "..."}``
    * plain text -> ``"Server error: <status> <reason>"``

    Anything else yields the generic booking failure message.
    """
    data = _decode(body)

    if isinstance(data, dict):
        field_errors = data.get("fieldErrors")
        if isinstance(field_errors, dict) and field_errors:
            return ", ".join(f"{name}: {msg}" for name, msg in field_errors.items())

        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            return ", ".join(str(e) for e in errors)

        details = data.get("details")
        if isinstance(details, list) and details:
            parts = []
            for d in details:
                if isinstance(d, dict) and d.get("message"):
                    parts.append(str(d["message"]))
                else:
                    parts.append(str(d))
            return ", ".join(parts)

        for key in ("message", "error"):
            if data.get(key):
                return str(data[key])

        return DEFAULT_BOOKING_ERROR

    if isinstance(data, str) and data.strip():
        if status_code is not None:
            return f"Server error: {status_code} {reason}".strip()
        return data.strip()

    return DEFAULT_BOOKING_ERROR
