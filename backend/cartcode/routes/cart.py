# Overview: Flask API routes for customer carts; parses input and returns JSON responses.

"""Cart API routes. Public: customers are identified by an opaque session id."""

from flask import Blueprint, request, jsonify

from ..responses import error_response
from ..services import cart_service
from ..validation import require_fields, coerce_int


cart_bp = Blueprint("cart", __name__, url_prefix="/api/cart")


def _optional_store_id(value):
    if value in (None, ""):
        return None
    return coerce_int(value, "storeId")


@cart_bp.get("")
def view_cart_route():
    """
    View cart with live pricing.

    Query parameters:
        session: customer session id (required)
        storeId: store scope (optional)

    Returns:
        200: {cart_id, items, total_cents, total_discount_cents, item_count}
        400: Missing session
    """
    try:
        session_id = request.args.get("session")
        if not session_id:
            return jsonify({"error": "session required"}), 400

        cart = cart_service.get_or_create_cart(session_id, _optional_store_id(request.args.get("storeId")))
        return jsonify(cart_service.view_cart(cart.id)), 200

    except Exception as e:
        return error_response(e, "get cart")


@cart_bp.post("")
def add_item_route():
    """
    Add item to cart (merges into an existing line for the same product and size).

    Request body:
    {
        "sessionId": str,
        "productId": int,
        "quantity": int (optional, default 1),
        "size": str (optional),
        "storeId": int (optional)
    }

    Returns:
        200: Resolved line quantity and pricing
        400: Invalid request
        404: Product not found
    """
    try:
        data = require_fields(request.get_json(silent=True), "sessionId", "productId")

        cart = cart_service.get_or_create_cart(data["sessionId"], _optional_store_id(data.get("storeId")))
        result = cart_service.add_item(
            cart_id=cart.id,
            product_id=coerce_int(data["productId"], "productId"),
            quantity=data.get("quantity", 1),
            size=data.get("size"),
        )

        return jsonify({"success": True, "cart_id": cart.id, **result}), 200

    except Exception as e:
        return error_response(e, "add item to cart")


@cart_bp.put("")
def update_item_route():
    """
    Update an item's quantity; zero or less removes it.

    Request body:
    {
        "sessionId": str,
        "itemId": int,
        "quantity": int
    }

    Returns:
        200: Updated pricing, or {"removed": true}
        400: Invalid request
        404: Item not found in this session's cart
    """
    try:
        data = require_fields(request.get_json(silent=True), "sessionId", "itemId", "quantity")

        result = cart_service.update_item(
            item_id=coerce_int(data["itemId"], "itemId"),
            quantity=data["quantity"],
            session_id=str(data["sessionId"]),
        )

        return jsonify({"success": True, **result}), 200

    except Exception as e:
        return error_response(e, "update cart item")


@cart_bp.delete("")
def remove_item_route():
    """
    Remove a line from a cart.

    Query parameters:
        itemId: cart line id (required)
        session: owning session id (optional; restricts the delete to that cart)

    Returns:
        200: Line removed, or nothing to remove when no session is given
        400: Missing or invalid itemId
        404: Item not found in this session's cart
    """
    try:
        item_id = request.args.get("itemId")
        if not item_id:
            return jsonify({"error": "itemId required"}), 400

        cart_service.remove_item(coerce_int(item_id, "itemId"), session_id=request.args.get("session") or None)
        return jsonify({"success": True}), 200

    except Exception as e:
        return error_response(e, "remove cart item")
