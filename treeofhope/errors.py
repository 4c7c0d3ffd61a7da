"""
Domain error taxonomy.

Services raise these; the app factory renders them as JSON with the
matching HTTP status. `UpstreamError.detail` is logged server-side only.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class TreeOfHopeError(Exception):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, extra: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.extra = dict(extra or {})
        super().__init__(self.message)


class ValidationError(TreeOfHopeError):
    status_code = 400
    default_message = "Missing required fields"


class NotFoundError(TreeOfHopeError):
    status_code = 404
    default_message = "Not found"


class AuthenticationError(TreeOfHopeError):
    status_code = 401
    default_message = "Unauthorized"


class AuthorizationError(TreeOfHopeError):
    status_code = 401
    default_message = "Unauthorized"


class UpstreamError(TreeOfHopeError):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, *, detail: Any = None, **kw: Any):
        super().__init__(message, **kw)
        self.detail = detail


class PaymentsNotConfiguredError(TreeOfHopeError):
    status_code = 503
    default_message = (
        "Payments are being configured. In the meantime, your leaf and your presence "
        "matter most. Contact hello@treeofhope.com to support directly."
    )


__all__ = [
    "TreeOfHopeError",
    "ValidationError",
    "NotFoundError",
    "AuthenticationError",
    "AuthorizationError",
    "UpstreamError",
    "PaymentsNotConfiguredError",
]
