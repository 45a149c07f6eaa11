"""
Checkout confirmation tests.

Verifies:
- A transfer confirms into exactly one Order, even when confirmed twice
- Order totals equal the live cart view
- Stock is decremented (clamped at zero) without blocking the sale
"""

from datetime import timedelta

import pytest
from sqlalchemy.exc import SQLAlchemyError

from cartcode.extensions import db
from cartcode.models import Order, OrderItem, Product, TransferCode
from cartcode.services import cart_service, checkout_service, inventory_service, transfer_service
from cartcode.time_utils import utcnow
from cartcode.validation import ValidationError, NotFoundError, ConflictError


@pytest.fixture
def cart(db_session, store, product, sized_product):
    cart = cart_service.get_or_create_cart("sess-1", store.id)
    cart_service.add_item(cart.id, product.id, 10)
    cart_service.add_item(cart.id, sized_product.id, 5, size="L")
    return cart


@pytest.fixture
def transfer(cart):
    transfer, _ = transfer_service.issue_transfer_code(cart.id)
    return transfer


class TestConfirm:

    def test_creates_order_matching_cart_view(self, cart, transfer, staff_user):
        view = cart_service.view_cart(cart.id)

        order = checkout_service.confirm_transfer(transfer.id, staff_id=staff_user.id, payment_method="Card")

        assert order.total_amount_cents == view["total_cents"] == 1600
        assert order.total_discount_cents == view["total_discount_cents"] == 150
        assert order.staff_id == staff_user.id
        assert order.payment_method == "card"
        assert order.transfer_code_id == transfer.id

        items = db.session.query(OrderItem).filter_by(order_id=order.id).order_by(OrderItem.id).all()
        assert [(i.quantity, i.unit_price_cents, i.retail_price_cents, i.size) for i in items] == [
            (10, 90, 100, None),
            (5, 140, 150, "L"),
        ]
        assert sum(i.line_total_cents for i in items) == order.total_amount_cents

    def test_marks_code_confirmed_and_clears_cart(self, cart, transfer):
        checkout_service.confirm_transfer(transfer.id)

        assert db.session.get(TransferCode, transfer.id).status == "confirmed"
        assert cart_service.count_items(cart.id) == 0
        assert cart_service.view_cart(cart.id)["items"] == []

    def test_decrements_stock(self, transfer, product, sized_product):
        checkout_service.confirm_transfer(transfer.id)

        assert db.session.get(Product, product.id).stock == 90
        reloaded = db.session.get(Product, sized_product.id)
        sizes = {entry["size"]: entry["stock"] for entry in reloaded.sizes}
        assert sizes == {"M": 10, "L": 5}
        # Sized lines leave the product-level counter alone.
        assert reloaded.stock == 50

    def test_stock_clamps_at_zero(self, transfer, product):
        product.stock = 3
        db.session.commit()

        checkout_service.confirm_transfer(transfer.id)
        assert db.session.get(Product, product.id).stock == 0

    def test_stock_failure_does_not_block_sale(self, transfer, product, monkeypatch):
        def broken_lock(query):
            raise SQLAlchemyError("counter unavailable")

        monkeypatch.setattr(inventory_service, "lock_for_update", broken_lock)
        order = checkout_service.confirm_transfer(transfer.id)

        assert db.session.get(Order, order.id) is not None
        assert db.session.get(Product, product.id).stock == 100
        assert db.session.get(TransferCode, transfer.id).status == "confirmed"


class TestSingleConfirmation:

    def test_second_confirm_rejected(self, transfer):
        checkout_service.confirm_transfer(transfer.id)

        with pytest.raises(ConflictError, match="Transfer already confirmed"):
            checkout_service.confirm_transfer(transfer.id)

        assert db.session.query(Order).count() == 1

    def test_confirm_after_cancel_rejected(self, cart, transfer):
        transfer_service.cancel_transfer(transfer.id)

        with pytest.raises(ConflictError, match="already cancelled"):
            checkout_service.confirm_transfer(transfer.id)

        assert db.session.query(Order).count() == 0
        assert cart_service.count_items(cart.id) == 2

    def test_expired_code_rejected(self, app, cart):
        issued_at = utcnow()
        transfer, _ = transfer_service.issue_transfer_code(cart.id, now=issued_at)
        later = issued_at + timedelta(minutes=app.config["TRANSFER_CODE_TTL_MINUTES"] + 1)

        with pytest.raises(ConflictError) as excinfo:
            checkout_service.confirm_transfer(transfer.id, now=later)

        assert excinfo.value.status_code == 410
        assert db.session.get(TransferCode, transfer.id).status == "expired"
        assert db.session.query(Order).count() == 0

    def test_unknown_transfer(self):
        with pytest.raises(NotFoundError):
            checkout_service.confirm_transfer(999999)

    def test_emptied_cart_rolls_back_claim(self, cart, transfer):
        cart_service.clear_cart(cart.id)
        db.session.commit()

        with pytest.raises(ConflictError, match="Cart is empty"):
            checkout_service.confirm_transfer(transfer.id)

        # Nothing from the failed attempt persists, including the claim.
        assert db.session.get(TransferCode, transfer.id).status == "pending"
        assert db.session.query(Order).count() == 0


class TestPaymentMethod:

    def test_defaults_to_cash(self):
        assert checkout_service.normalize_payment_method(None) == "cash"
        assert checkout_service.normalize_payment_method("  ") == "cash"

    def test_too_long(self):
        with pytest.raises(ValidationError):
            checkout_service.normalize_payment_method("x" * 33)
