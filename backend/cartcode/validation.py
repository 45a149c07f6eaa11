"""
Error taxonomy and request-field coercion shared by services and routes.

Every service error carries the HTTP status it maps to, so routes can answer
``{"error": message}`` without re-deciding status codes per call site.
"""
from __future__ import annotations

from typing import Any


class ServiceError(Exception):
    """Base class for errors that are reported to the client."""
    status_code = 500

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ValidationError(ServiceError):
    """400-level input problem (missing or malformed field)."""
    status_code = 400


class NotFoundError(ServiceError):
    """Unknown product, cart, code, store or order."""
    status_code = 404


class ConflictError(ServiceError):
    """
    Business rule conflict: code already used/expired/cancelled, empty cart,
    transfer already processed.

    Expired codes answer 410 Gone; every other conflict answers 400.
    """
    status_code = 400

    def __init__(self, message: str, details: dict | None = None, *, expired: bool = False):
        super().__init__(message, details)
        self.expired = expired
        if expired:
            self.status_code = 410


class AuthorizationError(ServiceError):
    """Caller lacks the role required for a privileged code operation."""
    status_code = 403


class StoreError(ServiceError):
    """Relational store failure (including missing schema)."""
    status_code = 500


def require_fields(data: dict | None, *names: str) -> dict:
    """
    Ensure every named field is present and non-empty.

    Returns the payload (an empty dict when the body was missing) so callers
    can chain ``data = require_fields(request.get_json(silent=True), ...)``.
    """
    data = data or {}
    missing = [name for name in names if data.get(name) in (None, "")]
    if missing:
        raise ValidationError(f"{', '.join(missing)} required")
    return data


def coerce_int(value: Any, field: str) -> int:
    """Strict integer coercion: rejects booleans, floats, decimals and scientific notation."""
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def coerce_optional_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
