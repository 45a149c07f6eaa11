"""
Checkout handoff: turn a pending transfer code and its cart into an Order.

WHY: The cashier's confirmation is the only place money is committed, so it
re-prices the cart from live catalog data rather than trusting snapshots.

ATOMICITY: one transaction covers
1. claim the code (pending -> confirmed compare-and-swap)
2. re-read and re-price cart lines
3. create the Order and its OrderItems
4. decrement stock (advisory, savepoint, failures logged and skipped)
5. clear the cart (the cart row stays for reuse)

The claim runs first: a second confirmation finds the row no longer pending
and is rejected before any write. Any failure after the claim rolls the
whole unit back, including the claim, so no partial order can persist.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Order, OrderItem, TransferCode
from ..models.codes import TRANSFER_STATUS_CONFIRMED
from ..time_utils import utcnow
from ..validation import ValidationError, ConflictError, NotFoundError
from . import cart_service, inventory_service
from .concurrency import run_with_retry
from .transfer_service import claim_pending, raise_not_pending


DEFAULT_PAYMENT_METHOD = "cash"


def normalize_payment_method(method: str | None) -> str:
    m = (method or DEFAULT_PAYMENT_METHOD).strip().lower()
    if len(m) > 32:
        raise ValidationError("paymentMethod is too long")
    return m or DEFAULT_PAYMENT_METHOD


def confirm_transfer(
    transfer_id: int,
    staff_id: int | None = None,
    payment_method: str | None = None,
    now: datetime | None = None,
) -> Order:
    """
    Complete the sale for a pending transfer code.

    Raises:
        NotFoundError: unknown transfer
        ConflictError: already confirmed/cancelled, expired (410), or empty cart
    """
    payment_method = normalize_payment_method(payment_method)
    now = now or utcnow()

    def _op():
        if not claim_pending(transfer_id, TRANSFER_STATUS_CONFIRMED, staff_id, now):
            db.session.rollback()
            raise_not_pending(
                db.session.query(TransferCode).populate_existing().filter_by(id=transfer_id).first(),
                now,
            )

        try:
            transfer = db.session.query(TransferCode).populate_existing().filter_by(id=transfer_id).one()
            cart = transfer.cart

            lines = cart_service.priced_lines(cart.id)
            if not lines:
                raise ConflictError("Cart is empty")

            order = Order(
                store_id=cart.store_id,
                transfer_code_id=transfer.id,
                staff_id=staff_id,
                status="completed",
                payment_method=payment_method,
                total_amount_cents=sum(line.subtotal_cents for line in lines),
                total_discount_cents=sum(line.pricing.discount_cents for line in lines),
            )
            db.session.add(order)
            db.session.flush()

            for line in lines:
                db.session.add(OrderItem(
                    order_id=order.id,
                    product_id=line.product.id,
                    product_name=line.product.name,
                    size=line.item.size,
                    quantity=line.item.quantity,
                    unit_price_cents=line.pricing.price_cents,
                    retail_price_cents=line.pricing.basis_cents,
                    line_total_cents=line.subtotal_cents,
                    is_wholesale=line.pricing.is_wholesale,
                    tier_label=line.pricing.tier_label,
                ))
            db.session.flush()

            for line in lines:
                inventory_service.decrement_stock(line.product.id, line.item.quantity, line.item.size)

            cart_service.clear_cart(cart.id)
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        current_app.logger.info(
            "Transfer %s confirmed by staff %s as order %s (total=%s, discount=%s)",
            transfer_id, staff_id, order.id, order.total_amount_cents, order.total_discount_cents,
        )
        return order

    return run_with_retry(_op)


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if not order:
        raise NotFoundError("Order not found")
    return order


def order_summary(order: Order) -> dict:
    return {
        **order.to_dict(),
        "items": [item.to_dict() for item in order.items],
    }
