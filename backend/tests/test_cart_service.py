"""
Cart service tests.

Verifies:
- Adds merge into one line per (product, size) and re-price at the combined quantity
- A concurrent duplicate insert is merged instead of failing
- Views re-price from live catalog data
"""

import pytest

from cartcode.extensions import db
from cartcode.models import Cart, CartItem
from cartcode.services import cart_service
from cartcode.validation import ValidationError, NotFoundError


@pytest.fixture
def cart(db_session, store):
    return cart_service.get_or_create_cart("sess-1", store.id)


class TestGetOrCreateCart:

    def test_idempotent(self, cart, store):
        again = cart_service.get_or_create_cart("sess-1", store.id)
        assert again.id == cart.id
        assert db.session.query(Cart).count() == 1

    def test_global_and_store_carts_are_distinct(self, cart):
        global_cart = cart_service.get_or_create_cart("sess-1")
        assert global_cart.id != cart.id
        assert global_cart.store_id is None

    def test_session_required(self):
        with pytest.raises(ValidationError):
            cart_service.get_or_create_cart("  ")

    def test_unknown_store(self):
        with pytest.raises(NotFoundError):
            cart_service.get_or_create_cart("sess-1", 999999)


class TestAddItem:

    def test_repeated_adds_merge_and_reprice(self, cart, product):
        first = cart_service.add_item(cart.id, product.id, 9)
        assert first["unit_price_cents"] == 100

        second = cart_service.add_item(cart.id, product.id, 1)
        assert second["item_id"] == first["item_id"]
        assert second["quantity"] == 10
        assert second["unit_price_cents"] == 90
        assert second["is_wholesale"] is True
        assert second["tier_label"] == "Box of 10"
        assert second["discount_cents"] == 100

        assert db.session.query(CartItem).filter_by(cart_id=cart.id).count() == 1

    def test_sizes_are_distinct_lines(self, cart, sized_product):
        cart_service.add_item(cart.id, sized_product.id, 1, size="M")
        cart_service.add_item(cart.id, sized_product.id, 1, size="L")
        cart_service.add_item(cart.id, sized_product.id, 1)
        cart_service.add_item(cart.id, sized_product.id, 1)

        lines = db.session.query(CartItem).filter_by(cart_id=cart.id).all()
        assert sorted((line.size or "", line.quantity) for line in lines) == [("", 2), ("L", 1), ("M", 1)]

    def test_concurrent_insert_is_merged(self, cart, sized_product, monkeypatch):
        cart_service.add_item(cart.id, sized_product.id, 1, size="M")

        real_find = cart_service._find_item
        calls = {"n": 0}

        def stale_find(*args, **kwargs):
            # First read misses the row another request already inserted.
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return real_find(*args, **kwargs)

        monkeypatch.setattr(cart_service, "_find_item", stale_find)
        result = cart_service.add_item(cart.id, sized_product.id, 1, size="M")

        assert calls["n"] == 2
        assert result["quantity"] == 2
        lines = db.session.query(CartItem).filter_by(cart_id=cart.id).all()
        assert len(lines) == 1
        assert lines[0].quantity == 2

    @pytest.mark.parametrize("quantity", [0, -3, "abc", 1.5])
    def test_rejects_bad_quantity(self, cart, product, quantity):
        with pytest.raises(ValidationError):
            cart_service.add_item(cart.id, product.id, quantity)

    def test_unknown_product(self, cart):
        with pytest.raises(NotFoundError):
            cart_service.add_item(cart.id, 999999, 1)

    def test_inactive_product(self, cart, product):
        product.is_active = False
        db.session.commit()
        with pytest.raises(NotFoundError):
            cart_service.add_item(cart.id, product.id, 1)

    def test_product_from_other_store(self, db_session, other_store, product):
        other_cart = cart_service.get_or_create_cart("sess-1", other_store.id)
        with pytest.raises(NotFoundError):
            cart_service.add_item(other_cart.id, product.id, 1)


class TestUpdateAndRemove:

    def test_update_reprices(self, cart, product):
        added = cart_service.add_item(cart.id, product.id, 1)
        updated = cart_service.update_item(added["item_id"], 50, session_id="sess-1")
        assert updated["quantity"] == 50
        assert updated["unit_price_cents"] == 80

    def test_update_to_zero_removes(self, cart, product):
        added = cart_service.add_item(cart.id, product.id, 3)
        result = cart_service.update_item(added["item_id"], 0, session_id="sess-1")
        assert result["removed"] is True
        assert cart_service.count_items(cart.id) == 0

    def test_update_requires_owning_session(self, cart, product):
        added = cart_service.add_item(cart.id, product.id, 1)
        with pytest.raises(NotFoundError):
            cart_service.update_item(added["item_id"], 2, session_id="someone-else")

    def test_remove(self, cart, product):
        added = cart_service.add_item(cart.id, product.id, 1)
        assert cart_service.remove_item(added["item_id"]) is True
        assert cart_service.remove_item(added["item_id"]) is False

    def test_remove_scoped_to_owning_session(self, cart, product):
        added = cart_service.add_item(cart.id, product.id, 1)

        with pytest.raises(NotFoundError):
            cart_service.remove_item(added["item_id"], session_id="someone-else")
        assert db.session.get(CartItem, added["item_id"]) is not None

        assert cart_service.remove_item(added["item_id"], session_id="sess-1") is True
        assert db.session.get(CartItem, added["item_id"]) is None


class TestViewCart:

    def test_totals(self, cart, product, sized_product):
        cart_service.add_item(cart.id, product.id, 10)
        cart_service.add_item(cart.id, sized_product.id, 5, size="L")

        view = cart_service.view_cart(cart.id)
        assert view["cart_id"] == cart.id
        assert view["item_count"] == 15
        assert view["total_cents"] == 10 * 90 + 5 * 140
        assert view["total_discount_cents"] == 10 * 10 + 5 * 10
        assert [item["product_id"] for item in view["items"]] == [product.id, sized_product.id]

    def test_reprices_stale_snapshot(self, cart, product):
        cart_service.add_item(cart.id, product.id, 10)

        product.wholesale_tiers = []
        db.session.commit()

        line = cart_service.view_cart(cart.id)["items"][0]
        assert line["unit_price_cents"] == 100
        assert line["is_wholesale"] is False
        # The stored snapshot still says 90 until the line is next mutated.
        assert db.session.query(CartItem).one().unit_price_cents == 90

    def test_missing_cart_is_empty(self):
        view = cart_service.view_cart(999999)
        assert view["items"] == []
        assert view["total_cents"] == 0
        assert view["item_count"] == 0
