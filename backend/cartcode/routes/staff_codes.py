# Overview: Flask API routes for deterministic staff codes; parses input and returns JSON responses.

"""
Deterministic staff code routes.

These codes are never stored: GET recomputes the current code, POST
recomputes and compares. There is nothing to consume, so a code stays valid
for everyone until its window (plus one grace window) passes.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..responses import error_response
from ..services import staff_code_service, store_service
from ..time_utils import to_utc_z
from ..validation import require_fields, coerce_int, ConflictError


staff_codes_bp = Blueprint("staff_codes", __name__, url_prefix="/api/staff-code")


@staff_codes_bp.get("")
@require_auth
@require_role("admin", "organizer")
def current_staff_code():
    try:
        store_id = request.args.get("storeId")
        if not store_id:
            return jsonify({"error": "storeId required"}), 400

        store = store_service.require_managed_store(coerce_int(store_id, "storeId"), g.current_user)
        current = staff_code_service.current_code(store.id)
        return jsonify({"code": current["code"], "expires_at": to_utc_z(current["expires_at"])}), 200

    except Exception as e:
        return error_response(e, "generate staff code")


@staff_codes_bp.post("")
def verify_staff_code():
    """
    Verify a staff code against the current or immediately preceding window.

    Request body:
    {
        "storeId": int,
        "code": str
    }

    Returns:
        200: {store_id, expires_at} where expires_at ends the matched window
        400: Missing field, or invalid/expired code
    """
    try:
        data = require_fields(request.get_json(silent=True), "storeId", "code")
        store_id = coerce_int(data["storeId"], "storeId")

        verification = staff_code_service.verify_code(store_id, str(data["code"]))
        if not verification.valid:
            raise ConflictError("Invalid or expired code")

        return jsonify({"store_id": store_id, "expires_at": to_utc_z(verification.expires_at)}), 200

    except Exception as e:
        return error_response(e, "verify staff code")
