# Overview: Service-layer operations for maintenance; encapsulates business logic and database work.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import JoinCode, TransferCode
from ..models.codes import (
    JOIN_CODE_STATUS_ACTIVE,
    JOIN_CODE_STATUS_EXPIRED,
    TRANSFER_STATUS_PENDING,
    TRANSFER_STATUS_EXPIRED,
)
from cartcode.time_utils import utcnow


def sweep_expired_codes(now: datetime | None = None) -> dict:
    """
    Flip every overdue active join code and pending transfer code to expired.

    Request paths already expire codes lazily; this only tidies rows nobody
    has looked at since they lapsed.
    """
    now = now or utcnow()
    join_codes = db.session.query(JoinCode).filter(
        JoinCode.status == JOIN_CODE_STATUS_ACTIVE,
        JoinCode.expires_at <= now,
    ).update({"status": JOIN_CODE_STATUS_EXPIRED}, synchronize_session=False)
    transfers = db.session.query(TransferCode).filter(
        TransferCode.status == TRANSFER_STATUS_PENDING,
        TransferCode.expires_at <= now,
    ).update({"status": TRANSFER_STATUS_EXPIRED, "updated_at": now}, synchronize_session=False)
    db.session.commit()
    return {"join_codes": join_codes, "transfer_codes": transfers}
