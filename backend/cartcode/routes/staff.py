# Overview: Flask API routes for store staff membership; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g

from ..decorators import require_auth, require_role
from ..extensions import db
from ..models import Store
from ..responses import error_response
from ..roles import ROLE_ORGANIZER, ROLE_STAFF
from ..services import staff_service, store_service
from ..validation import require_fields, coerce_int, NotFoundError


staff_bp = Blueprint("staff", __name__, url_prefix="/api/staff")


@staff_bp.post("")
def enroll_staff_route():
    """
    Join a store by redeeming a join code.

    Request body:
    {
        "userId": int,
        "name": str,
        "storeId": int,
        "code": str,
        "role": "staff" (optional; any other role is rejected)
    }

    Returns:
        201: Membership created
        400: Invalid request, invalid code, or user already staff
        404: User or store not found
    """
    try:
        data = require_fields(request.get_json(silent=True), "userId", "name", "storeId", "code")

        member = staff_service.enroll_staff(
            user_id=coerce_int(data["userId"], "userId"),
            name=data["name"],
            store_id=coerce_int(data["storeId"], "storeId"),
            code=str(data["code"]),
            role=data.get("role") or "staff",
        )
        return jsonify({"staff": member.to_dict()}), 201

    except Exception as e:
        return error_response(e, "create staff")


@staff_bp.get("")
@require_auth
@require_role("staff")
def list_staff_route():
    """
    List store members.

    Organizers see the stores they own, staff see their own store, admins
    see every store.

    Query parameters:
        storeId: restrict to one store (optional)
    """
    try:
        user = g.current_user
        store_id = request.args.get("storeId")
        store_id = coerce_int(store_id, "storeId") if store_id else None

        if user.role == ROLE_STAFF:
            if store_id is not None and store_id != user.store_id:
                raise NotFoundError("Store not found")
            store_ids = [user.store_id] if user.store_id is not None else []
        elif store_id is not None:
            store_ids = [store_service.require_managed_store(store_id, user).id]
        elif user.role == ROLE_ORGANIZER:
            store_ids = [s.id for s in db.session.query(Store).filter_by(organizer_id=user.id).all()]
        else:
            store_ids = None

        members = staff_service.list_staff(store_ids)
        return jsonify({"staff": [m.to_dict() for m in members]}), 200

    except Exception as e:
        return error_response(e, "get staff")
