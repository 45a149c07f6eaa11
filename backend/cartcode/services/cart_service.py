"""
Cart service: session carts, line mutation and live-priced views.

WHY: Every mutation re-runs the pricing engine at the line's new total
quantity and persists the derived unit price. Readers that present money
(view, transfer lookup, order confirmation) re-price from live catalog data
through priced_lines so all three agree on totals.

CONCURRENCY: A line's identity is (cart, product, size). Two concurrent adds
of the same identity may both try to insert; the loser hits the unique
constraint, rolls back and re-runs, which finds the winner's row and merges
the requested quantity into it.
"""
from __future__ import annotations

from dataclasses import dataclass

from flask import current_app

from ..extensions import db
from ..models import Cart, CartItem, Product, Store
from ..validation import ValidationError, NotFoundError, coerce_int, coerce_optional_str
from .concurrency import lock_for_update, run_with_retry, insert_with_conflict_retry
from .pricing_service import PriceResolution, resolve_product_price


@dataclass(frozen=True)
class PricedLine:
    item: CartItem
    product: Product
    pricing: PriceResolution

    @property
    def subtotal_cents(self) -> int:
        return self.pricing.price_cents * self.item.quantity

    def to_dict(self) -> dict:
        return {
            "id": self.item.id,
            "product_id": self.product.id,
            "size": self.item.size,
            "quantity": self.item.quantity,
            "unit_price_cents": self.pricing.price_cents,
            "retail_price_cents": self.pricing.basis_cents,
            "is_wholesale": self.pricing.is_wholesale,
            "tier_label": self.pricing.tier_label,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.pricing.discount_cents,
            "product": self.product.summary(),
        }


def _store_scope(store_id: int | None) -> int:
    return store_id or 0


def _size_key(size: str | None) -> str:
    return size or ""


def find_cart(session_id: str, store_id: int | None = None) -> Cart | None:
    return db.session.query(Cart).filter_by(
        session_id=session_id,
        store_scope=_store_scope(store_id),
    ).first()


def get_or_create_cart(session_id: str, store_id: int | None = None) -> Cart:
    """
    Return the cart for (session_id, store), creating it on first access.

    Idempotent: a concurrent creator losing the unique race re-reads the
    winner's row instead of failing.
    """
    session_id = coerce_optional_str(session_id)
    if not session_id:
        raise ValidationError("session required")

    def _op():
        cart = find_cart(session_id, store_id)
        if cart:
            return cart

        if store_id is not None and not db.session.get(Store, store_id):
            raise NotFoundError("Store not found")

        cart = Cart(session_id=session_id, store_id=store_id, store_scope=_store_scope(store_id))
        db.session.add(cart)
        db.session.flush()
        db.session.commit()
        return cart

    return insert_with_conflict_retry(lambda: run_with_retry(_op))


def _find_item(cart_id: int, product_id: int, size: str | None) -> CartItem | None:
    return lock_for_update(
        db.session.query(CartItem).filter_by(
            cart_id=cart_id,
            product_id=product_id,
            size_key=_size_key(size),
        )
    ).first()


def _apply_pricing(item: CartItem, quantity: int, pricing: PriceResolution) -> None:
    item.quantity = quantity
    item.unit_price_cents = pricing.price_cents
    item.is_wholesale = pricing.is_wholesale
    item.tier_label = pricing.tier_label


def _mutation_result(item: CartItem, pricing: PriceResolution) -> dict:
    return {
        "item_id": item.id,
        "quantity": item.quantity,
        "unit_price_cents": pricing.price_cents,
        "is_wholesale": pricing.is_wholesale,
        "tier_label": pricing.tier_label,
        "discount_cents": pricing.discount_cents,
    }


def add_item(cart_id: int, product_id: int, quantity=1, size: str | None = None) -> dict:
    """
    Add quantity units of (product, size) to a cart.

    The line is re-priced at the combined quantity (existing + requested), so
    adding one more unit can move the whole line into a wholesale tier.
    """
    quantity = coerce_int(quantity, "quantity")
    if quantity <= 0:
        raise ValidationError("quantity must be positive")
    size = coerce_optional_str(size)

    def _op():
        cart = db.session.get(Cart, cart_id)
        if not cart:
            raise NotFoundError("Cart not found")

        product = db.session.get(Product, product_id)
        if not product or not product.is_active:
            raise NotFoundError("Product not found")
        if cart.store_id is not None and product.store_id not in (None, cart.store_id):
            raise NotFoundError("Product not found")

        existing = _find_item(cart.id, product.id, size)
        new_quantity = existing.quantity + quantity if existing else quantity
        pricing = resolve_product_price(product, new_quantity, size)

        if existing:
            item = existing
            _apply_pricing(item, new_quantity, pricing)
        else:
            item = CartItem(
                cart_id=cart.id,
                product_id=product.id,
                size=size,
                size_key=_size_key(size),
            )
            _apply_pricing(item, new_quantity, pricing)
            db.session.add(item)

        # A concurrent insert of the same identity surfaces here as IntegrityError
        db.session.flush()
        result = _mutation_result(item, pricing)
        db.session.commit()
        return result

    return insert_with_conflict_retry(lambda: run_with_retry(_op))


def _get_owned_item(item_id: int, session_id: str | None) -> CartItem:
    item = lock_for_update(db.session.query(CartItem).filter_by(id=item_id)).first()
    if not item:
        raise NotFoundError("Item not found")
    if session_id is not None and item.cart.session_id != session_id:
        raise NotFoundError("Item not found")
    return item


def update_item(item_id: int, quantity, session_id: str | None = None) -> dict:
    """
    Set a line's quantity. Zero or less deletes the line; anything else
    re-prices it at the new quantity.
    """
    quantity = coerce_int(quantity, "quantity")

    def _op():
        item = _get_owned_item(item_id, session_id)

        if quantity <= 0:
            db.session.delete(item)
            db.session.commit()
            return {"item_id": item_id, "removed": True}

        pricing = resolve_product_price(item.product, quantity, item.size)
        _apply_pricing(item, quantity, pricing)
        db.session.flush()
        result = _mutation_result(item, pricing)
        db.session.commit()
        return result

    return run_with_retry(_op)


def remove_item(item_id: int, session_id: str | None = None) -> bool:
    """
    Delete a line. Returns False when nothing was deleted.

    With session_id, only a line in that session's cart is deleted and a miss
    raises NotFoundError, matching update_item.
    """
    def _op():
        query = db.session.query(CartItem).filter(CartItem.id == item_id)
        if session_id is not None:
            owned_carts = db.session.query(Cart.id).filter(Cart.session_id == session_id)
            query = query.filter(CartItem.cart_id.in_(owned_carts.scalar_subquery()))
        deleted = query.delete(synchronize_session=False)
        if session_id is not None and not deleted:
            raise NotFoundError("Item not found")
        db.session.commit()
        return bool(deleted)

    return run_with_retry(_op)


def priced_lines(cart_id: int) -> list[PricedLine]:
    """
    Cart lines re-priced against live product data.

    The stored unit_price_cents snapshot is ignored here: tiers, sizes or the
    base price may have changed since the line was last touched.
    """
    rows = (
        db.session.query(CartItem, Product)
        .join(Product, CartItem.product_id == Product.id)
        .filter(CartItem.cart_id == cart_id)
        .order_by(CartItem.id)
        .all()
    )
    lines = []
    for item, product in rows:
        pricing = resolve_product_price(product, item.quantity, item.size)
        if pricing.price_cents != item.unit_price_cents:
            current_app.logger.debug(
                "Cart item %s repriced from %s to %s", item.id, item.unit_price_cents, pricing.price_cents
            )
        lines.append(PricedLine(item=item, product=product, pricing=pricing))
    return lines


def summarize(lines: list[PricedLine]) -> dict:
    return {
        "items": [line.to_dict() for line in lines],
        "total_cents": sum(line.subtotal_cents for line in lines),
        "total_discount_cents": sum(line.pricing.discount_cents for line in lines),
        "item_count": sum(line.item.quantity for line in lines),
    }


def view_cart(cart_id: int | None) -> dict:
    """Live-priced cart view. A missing cart reads as an empty one."""
    cart = db.session.get(Cart, cart_id) if cart_id is not None else None
    if not cart:
        return {"cart_id": cart_id, **summarize([])}
    return {"cart_id": cart.id, **summarize(priced_lines(cart.id))}


def count_items(cart_id: int) -> int:
    return db.session.query(CartItem).filter_by(cart_id=cart_id).count()


def clear_cart(cart_id: int) -> int:
    """Delete every line in the cart; the cart row itself is kept. Does not commit."""
    return db.session.query(CartItem).filter_by(cart_id=cart_id).delete(synchronize_session=False)
