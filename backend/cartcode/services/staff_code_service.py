"""
Deterministic staff codes: stateless, time-windowed 6-digit codes.

code(store, t) = HMAC-SHA256(secret, "<store>:<window>") -> first 32 bits
mod 1_000_000, zero padded, where window = floor(t_ms / window_ms).

Nothing is stored, so nothing can be consumed: a code is valid for anyone
who presents it during its window or the immediately following one (grace
for requests landing just after a rollover). Unlike join and transfer codes
it cannot be revoked early; it lapses only when its windows pass.

The secret is loaded once at startup (init_app) and injected through
app.extensions. A missing secret fails app creation, and so does a
SECRET_KEY still set to the public development placeholder.
"""
from __future__ import annotations

import hashlib
import hmac
from dataclasses import dataclass
from datetime import datetime

from flask import current_app

from ..config import DEV_SECRET_KEY
from ..time_utils import utcnow, to_epoch_seconds, from_epoch_seconds


EXTENSION_KEY = "cartcode.staff_codes"
CODE_MODULUS = 1_000_000


@dataclass(frozen=True)
class StaffCodeVerification:
    valid: bool
    expires_at: datetime


class StaffCodeSigner:
    def __init__(self, secret: str | bytes, window_minutes: int = 10):
        if not secret:
            raise ValueError("Staff code secret is required")
        if window_minutes <= 0:
            raise ValueError("window_minutes must be positive")
        self._key = secret.encode("utf-8") if isinstance(secret, str) else secret
        self.window_ms = window_minutes * 60 * 1000

    def window_for(self, at: datetime) -> int:
        return int(to_epoch_seconds(at) * 1000) // self.window_ms

    def window_end(self, window: int) -> datetime:
        return from_epoch_seconds((window + 1) * self.window_ms / 1000)

    def _code_for_window(self, store_id, window: int) -> str:
        digest = hmac.new(self._key, f"{store_id}:{window}".encode("utf-8"), hashlib.sha256).hexdigest()
        return f"{int(digest[:8], 16) % CODE_MODULUS:06d}"

    def code_for(self, store_id, at: datetime | None = None) -> str:
        return self._code_for_window(store_id, self.window_for(at or utcnow()))

    def expires_at(self, at: datetime | None = None) -> datetime:
        """End of the window containing at."""
        return self.window_end(self.window_for(at or utcnow()))

    def verify(self, store_id, code: str | None, at: datetime | None = None) -> StaffCodeVerification:
        at = at or utcnow()
        current = self.window_for(at)
        candidate = (code or "").strip()
        if store_id in (None, "") or not candidate:
            return StaffCodeVerification(valid=False, expires_at=self.window_end(current))

        for window in (current, current - 1):
            if hmac.compare_digest(self._code_for_window(store_id, window), candidate):
                return StaffCodeVerification(valid=True, expires_at=self.window_end(window))

        return StaffCodeVerification(valid=False, expires_at=self.window_end(current))


def _signing_secret(config) -> str | None:
    """STAFF_CODE_SECRET, else a deployment-specific SECRET_KEY. The placeholder key never qualifies."""
    for key in ("STAFF_CODE_SECRET", "SECRET_KEY"):
        value = config.get(key)
        if value and value != DEV_SECRET_KEY:
            return value
    return None


def init_app(app) -> StaffCodeSigner:
    secret = _signing_secret(app.config)
    if not secret:
        raise RuntimeError(
            "Missing STAFF_CODE_SECRET (or a non-default SECRET_KEY) for staff codes"
        )
    signer = StaffCodeSigner(secret, window_minutes=app.config.get("STAFF_CODE_WINDOW_MINUTES", 10))
    app.extensions[EXTENSION_KEY] = signer
    return signer


def get_signer() -> StaffCodeSigner:
    return current_app.extensions[EXTENSION_KEY]


def current_code(store_id, at: datetime | None = None) -> dict:
    signer = get_signer()
    at = at or utcnow()
    return {"code": signer.code_for(store_id, at), "expires_at": signer.expires_at(at)}


def verify_code(store_id, code: str | None, at: datetime | None = None) -> StaffCodeVerification:
    return get_signer().verify(store_id, code, at)
