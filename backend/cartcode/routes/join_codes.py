# Overview: Flask API routes for stored store join codes; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..responses import error_response
from ..services import join_code_service, store_service
from ..time_utils import to_utc_z
from ..validation import require_fields, coerce_int, coerce_optional_str, ConflictError


join_codes_bp = Blueprint("join_codes", __name__, url_prefix="/api/join-code")

CHECK_MODES = ("check", "consume")


def _code_payload(join_code) -> dict:
    if join_code is None:
        return {"id": None, "code": None, "status": None, "expires_at": None}
    return {
        "id": join_code.id,
        "code": join_code.code,
        "status": join_code.status,
        "expires_at": to_utc_z(join_code.expires_at),
    }


@join_codes_bp.get("")
@require_auth
@require_role("admin", "organizer")
def get_active_join_code():
    """
    Fetch the active join code for a store and role.

    Query parameters:
        storeId: store (required)
        role: admin | staff (default admin)

    Returns:
        200: Active code, or all-null fields when none is active
        404: Store not found (or not owned by the organizer)
    """
    try:
        store_id = request.args.get("storeId")
        if not store_id:
            return jsonify({"error": "storeId required"}), 400

        store = store_service.require_managed_store(coerce_int(store_id, "storeId"), g.current_user)
        active = join_code_service.get_active_code(store.id, request.args.get("role", "admin"))
        return jsonify(_code_payload(active)), 200

    except Exception as e:
        return error_response(e, "load join code")


@join_codes_bp.post("")
@require_auth
@require_role("admin", "organizer")
def issue_join_code():
    """
    Issue a new join code, expiring the store's previous code for that role.

    Request body:
    {
        "storeId": int,
        "role": "admin" | "staff"
    }
    """
    try:
        data = require_fields(request.get_json(silent=True), "storeId", "role")
        store = store_service.require_managed_store(coerce_int(data["storeId"], "storeId"), g.current_user)

        join_code = join_code_service.issue_join_code(store.id, data["role"], created_by=g.current_user.id)
        return jsonify(_code_payload(join_code)), 201

    except Exception as e:
        return error_response(e, "create join code")


@join_codes_bp.post("/verify")
def verify_join_code():
    """
    Check or consume a join code.

    Request body:
    {
        "storeId": int,
        "code": str,
        "role": "admin" | "staff",
        "mode": "check" | "consume" (default check),
        "userId": int (optional, recorded on consume)
    }

    Returns:
        200: Code status (status "used" after consume)
        400: Invalid, expired or already used code
    """
    try:
        data = require_fields(request.get_json(silent=True), "storeId", "code", "role")
        store_id = coerce_int(data["storeId"], "storeId")
        mode = data.get("mode") or "check"
        if mode not in CHECK_MODES:
            return jsonify({"error": "mode must be check or consume"}), 400

        match = join_code_service.verify_join_code(store_id, data["role"], str(data["code"]))
        if not match:
            raise ConflictError("Invalid or expired code")

        body = {
            "status": match.status,
            "expires_at": to_utc_z(match.expires_at),
            "store_id": match.store_id,
            "role": match.role,
        }

        if mode == "consume":
            user_id = coerce_optional_str(data.get("userId"))
            consumed = join_code_service.consume_join_code(
                match.id,
                user_id=coerce_int(user_id, "userId") if user_id else None,
            )
            if not consumed:
                raise ConflictError("Code already used or expired")
            body.update({"status": consumed.status, "used_by": consumed.used_by})

        return jsonify(body), 200

    except Exception as e:
        return error_response(e, "verify join code")
