"""
Advisory stock counters.

Stock is not a reservation: a sale is never blocked by a missing or short
counter. decrement_stock runs inside a savepoint so a failure only discards
the counter change, never the caller's transaction.
"""
from __future__ import annotations

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product
from .concurrency import lock_for_update


class InventoryError(Exception):
    """Raised when a stock counter cannot be located."""
    pass


def _decrement_sizes(sizes: list, size: str, quantity: int) -> list | None:
    updated = []
    found = False
    for entry in sizes:
        if isinstance(entry, dict) and entry.get("size") == size and entry.get("stock") is not None:
            entry = {**entry, "stock": max(0, int(entry["stock"]) - quantity)}
            found = True
        updated.append(entry)
    return updated if found else None


def decrement_stock(product_id: int, quantity: int, size: str | None = None) -> bool:
    """
    Reduce stock by quantity, clamping at zero.

    Sized lines decrement the size's own counter when it has one; everything
    else decrements the product-level counter. Returns False (and logs) when
    the decrement could not be applied.
    """
    try:
        with db.session.begin_nested():
            product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
            if not product:
                raise InventoryError(f"Product {product_id} not found")

            sized = None
            if size and isinstance(product.sizes, list):
                sized = _decrement_sizes(product.sizes, size, quantity)

            if sized is not None:
                product.sizes = sized
            else:
                product.stock = max(0, (product.stock or 0) - quantity)
            db.session.flush()
        return True
    except (InventoryError, SQLAlchemyError) as exc:
        current_app.logger.warning(
            "Stock decrement skipped for product %s (size=%s, qty=%s): %s", product_id, size, quantity, exc
        )
        return False
