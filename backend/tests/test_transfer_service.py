"""
Transfer code tests.

Verifies:
- At most one pending code per cart; re-issuing returns it
- Lookup answers with a live-priced cart and reports expiry as 410
- Cancellation is a one-way pending -> cancelled transition
"""

from datetime import timedelta

import pytest

from cartcode.extensions import db
from cartcode.models import TransferCode
from cartcode.services import cart_service, transfer_service
from cartcode.time_utils import utcnow
from cartcode.validation import ValidationError, NotFoundError, ConflictError


@pytest.fixture
def cart(db_session, store, product):
    cart = cart_service.get_or_create_cart("sess-1", store.id)
    cart_service.add_item(cart.id, product.id, 10)
    return cart


class TestIssue:

    def test_code_shape(self, cart):
        transfer, created = transfer_service.issue_transfer_code(cart.id)
        assert created is True
        assert transfer.status == "pending"
        assert len(transfer.code) == 6
        assert set(transfer.code) <= set(transfer_service.CODE_ALPHABET)

    def test_reissue_returns_pending_code(self, cart):
        first, _ = transfer_service.issue_transfer_code(cart.id)
        second, created = transfer_service.issue_transfer_code(cart.id)
        assert created is False
        assert second.id == first.id
        assert db.session.query(TransferCode).filter_by(cart_id=cart.id).count() == 1

    def test_empty_cart(self, db_session, store):
        empty = cart_service.get_or_create_cart("empty", store.id)
        with pytest.raises(ConflictError, match="Cart is empty"):
            transfer_service.issue_transfer_code(empty.id)

    def test_unknown_cart(self):
        with pytest.raises(NotFoundError):
            transfer_service.issue_transfer_code(999999)

    def test_stale_pending_code_is_replaced(self, app, cart):
        issued_at = utcnow()
        old, _ = transfer_service.issue_transfer_code(cart.id, now=issued_at)
        later = issued_at + timedelta(minutes=app.config["TRANSFER_CODE_TTL_MINUTES"] + 1)

        new, created = transfer_service.issue_transfer_code(cart.id, now=later)

        assert created is True
        assert new.id != old.id
        assert db.session.get(TransferCode, old.id).status == "expired"


class TestLookup:

    def test_returns_priced_cart(self, cart, product):
        transfer, _ = transfer_service.issue_transfer_code(cart.id)
        result = transfer_service.lookup_transfer_code(transfer.code)

        assert result["transfer_id"] == transfer.id
        assert result["status"] == "pending"
        assert result["total_cents"] == 900
        assert result["items"][0]["product_id"] == product.id

    def test_case_insensitive(self, cart):
        transfer, _ = transfer_service.issue_transfer_code(cart.id)
        assert transfer_service.lookup_transfer_code(f"  {transfer.code.lower()} ")["transfer_id"] == transfer.id

    def test_code_required(self):
        with pytest.raises(ValidationError):
            transfer_service.lookup_transfer_code("")

    def test_unknown_code(self, cart):
        with pytest.raises(NotFoundError):
            transfer_service.lookup_transfer_code("ZZZZZZ!")

    def test_other_store_reads_as_unknown(self, cart, other_store):
        transfer, _ = transfer_service.issue_transfer_code(cart.id)
        with pytest.raises(NotFoundError):
            transfer_service.lookup_transfer_code(transfer.code, store_id=other_store.id)

    def test_expired_code_is_gone(self, app, cart):
        issued_at = utcnow()
        transfer, _ = transfer_service.issue_transfer_code(cart.id, now=issued_at)
        later = issued_at + timedelta(minutes=app.config["TRANSFER_CODE_TTL_MINUTES"], seconds=1)

        with pytest.raises(ConflictError) as excinfo:
            transfer_service.lookup_transfer_code(transfer.code, now=later)

        assert excinfo.value.status_code == 410
        assert db.session.get(TransferCode, transfer.id).status == "expired"

    def test_cancelled_code(self, cart):
        transfer, _ = transfer_service.issue_transfer_code(cart.id)
        transfer_service.cancel_transfer(transfer.id)
        with pytest.raises(ConflictError, match="already cancelled") as excinfo:
            transfer_service.lookup_transfer_code(transfer.code)
        assert excinfo.value.status_code == 400


class TestCancel:

    def test_cancel_leaves_cart_intact(self, cart, staff_user):
        transfer, _ = transfer_service.issue_transfer_code(cart.id)
        cancelled = transfer_service.cancel_transfer(transfer.id, staff_id=staff_user.id)

        assert cancelled.status == "cancelled"
        assert cancelled.staff_id == staff_user.id
        assert cart_service.count_items(cart.id) == 1

    def test_cancel_twice(self, cart):
        transfer, _ = transfer_service.issue_transfer_code(cart.id)
        transfer_service.cancel_transfer(transfer.id)
        with pytest.raises(ConflictError, match="Transfer already cancelled"):
            transfer_service.cancel_transfer(transfer.id)

    def test_cancel_unknown(self):
        with pytest.raises(NotFoundError):
            transfer_service.cancel_transfer(999999)

    def test_new_code_after_cancel(self, cart):
        first, _ = transfer_service.issue_transfer_code(cart.id)
        transfer_service.cancel_transfer(first.id)
        second, created = transfer_service.issue_transfer_code(cart.id)
        assert created is True
        assert second.id != first.id
