# Overview: Flask API routes for checkout handoff codes; parses input and returns JSON responses.

"""
Transfer code API routes.

Customers issue codes for their cart; staff look codes up and confirm or
cancel them.
"""

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..responses import error_response
from ..services import transfer_service, checkout_service, cart_service
from ..time_utils import to_utc_z
from ..validation import require_fields, coerce_int, ValidationError


transfer_bp = Blueprint("transfer", __name__, url_prefix="/api/transfer")

TRANSFER_ACTIONS = ("confirm", "cancel")


@transfer_bp.post("")
def issue_transfer_route():
    """
    Issue (or re-return) the transfer code for a cart.

    Request body:
    {
        "cartId": int
    }

    Returns:
        200: {id, code, status, expires_at, existing, items, total_cents, ...}
        400: Missing cartId or empty cart
        404: Cart not found
    """
    try:
        data = require_fields(request.get_json(silent=True), "cartId")
        cart_id = coerce_int(data["cartId"], "cartId")

        transfer, created = transfer_service.issue_transfer_code(cart_id)
        view = cart_service.view_cart(cart_id)

        return jsonify({
            "id": transfer.id,
            "code": transfer.code,
            "status": transfer.status,
            "expires_at": to_utc_z(transfer.expires_at),
            "existing": not created,
            **view,
        }), 200

    except Exception as e:
        return error_response(e, "generate transfer code")


@transfer_bp.get("")
@require_auth
@require_role("staff")
def lookup_transfer_route():
    """
    Staff lookup of a transfer code.

    Query parameters:
        code: transfer code (required, case-insensitive)
        storeId: restrict to carts of this store (optional)

    Returns:
        200: Transfer with live-priced cart lines and totals
        400: Missing code, or code already confirmed/cancelled
        404: Unknown code
        410: Code expired
    """
    try:
        code = request.args.get("code")
        if not code:
            return jsonify({"error": "code required"}), 400

        store_id = request.args.get("storeId")
        result = transfer_service.lookup_transfer_code(
            code,
            store_id=coerce_int(store_id, "storeId") if store_id else None,
        )
        result["expires_at"] = to_utc_z(result["expires_at"])
        return jsonify(result), 200

    except Exception as e:
        return error_response(e, "look up transfer code")


@transfer_bp.put("")
@require_auth
@require_role("staff")
def process_transfer_route():
    """
    Confirm or cancel a pending transfer.

    Request body:
    {
        "transferId": int,
        "action": "confirm" | "cancel",
        "staffId": int (optional, defaults to the caller),
        "paymentMethod": str (optional, confirm only, default "cash")
    }

    Returns:
        200: Order created, or transfer cancelled
        400: Invalid request, or transfer already processed
        404: Transfer not found
        410: Code expired
    """
    try:
        data = require_fields(request.get_json(silent=True), "transferId", "action")
        transfer_id = coerce_int(data["transferId"], "transferId")
        action = data["action"]
        if action not in TRANSFER_ACTIONS:
            raise ValidationError("Invalid action")

        staff_id = data.get("staffId")
        staff_id = coerce_int(staff_id, "staffId") if staff_id not in (None, "") else g.current_user.id

        if action == "confirm":
            order = checkout_service.confirm_transfer(
                transfer_id,
                staff_id=staff_id,
                payment_method=data.get("paymentMethod"),
            )
            return jsonify({
                "success": True,
                "order_id": order.id,
                "total_cents": order.total_amount_cents,
                "discount_cents": order.total_discount_cents,
                "order": checkout_service.order_summary(order),
            }), 200

        transfer = transfer_service.cancel_transfer(transfer_id, staff_id=staff_id)
        return jsonify({"success": True, "cancelled": True, "transfer": transfer.to_dict()}), 200

    except Exception as e:
        return error_response(e, "process transfer")
