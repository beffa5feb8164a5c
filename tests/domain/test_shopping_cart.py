import pytest
from protean.exceptions import ValidationError
from storefront.cart.cart import ShoppingCart
from storefront.cart.events import CartCleared, CartItemAdded, CartOwnershipTransferred, CartsMerged


@pytest.fixture
def cart():
    return ShoppingCart.create(session_id="sess-1")


class TestOwnership:
    def test_user_cart_drops_session_key(self):
        cart = ShoppingCart.create(user_id="u-1", session_id="sess-1")

        assert str(cart.user_id) == "u-1"
        assert cart.session_id is None

    def test_transfer_to_user(self, cart):
        cart.transfer_to("u-9")

        assert str(cart.user_id) == "u-9"
        assert cart.session_id is None
        event = next(e for e in cart._events if isinstance(e, CartOwnershipTransferred))
        assert event.previous_session_id == "sess-1"


class TestItems:
    def test_set_item_adds_line_and_total(self, cart):
        cart.set_item("p-1", "v-1", 2, 150_000)

        assert cart.line_items() == [{"product_id": "p-1", "variant_id": "v-1", "quantity": 2, "price": 150_000}]
        assert cart.total_amount == 300_000
        assert any(isinstance(e, CartItemAdded) for e in cart._events)

    def test_set_item_again_replaces_quantity(self, cart):
        cart.set_item("p-1", "v-1", 2, 150_000)
        cart.set_item("p-1", "v-1", 5, 140_000)

        assert len(cart.items) == 1
        assert cart.items[0].quantity == 5
        assert cart.total_amount == 700_000

    def test_zero_quantity_removes_line(self, cart):
        cart.set_item("p-1", "v-1", 2, 150_000)
        cart.set_item("p-1", "v-1", 0, 150_000)

        assert cart.items == []
        assert cart.total_amount == 0

    def test_negative_quantity_is_rejected(self, cart):
        with pytest.raises(ValidationError):
            cart.set_item("p-1", "v-1", -1, 150_000)

    def test_clear_returns_removed_lines(self, cart):
        cart.set_item("p-1", "v-1", 1, 10)
        cart.set_item("p-2", "v-2", 3, 20)

        removed = cart.clear()

        assert len(removed) == 2
        assert cart.items == []
        assert cart.total_amount == 0
        assert any(isinstance(e, CartCleared) for e in cart._events)

    def test_restore_puts_cleared_lines_back(self, cart):
        cart.set_item("p-1", "v-1", 1, 10)
        removed = cart.clear()

        cart.restore(removed)

        assert cart.line_items() == removed
        assert cart.total_amount == 10


class TestMerge:
    def test_merge_sums_quantities_of_matching_lines(self):
        user_cart = ShoppingCart.create(user_id="u-1")
        user_cart.set_item("p-1", "v-1", 1, 100)

        user_cart.merge_items(
            [
                {"product_id": "p-1", "variant_id": "v-1", "quantity": 2, "price": 100},
                {"product_id": "p-2", "variant_id": "v-2", "quantity": 1, "price": 50},
            ],
            source_session_id="sess-1",
        )

        quantities = {(str(i.product_id), str(i.variant_id)): i.quantity for i in user_cart.items}
        assert quantities == {("p-1", "v-1"): 3, ("p-2", "v-2"): 1}
        assert user_cart.total_amount == 350
        assert any(isinstance(e, CartsMerged) for e in user_cart._events)
