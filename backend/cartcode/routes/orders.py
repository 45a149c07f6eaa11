# Overview: Flask API routes for completed orders.

from flask import Blueprint, jsonify

from ..decorators import require_auth, require_role
from ..responses import error_response
from ..services import checkout_service


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


@orders_bp.get("/<int:order_id>")
@require_auth
@require_role("staff")
def get_order_route(order_id: int):
    try:
        order = checkout_service.get_order(order_id)
        return jsonify(checkout_service.order_summary(order)), 200
    except Exception as e:
        return error_response(e, "load order")
