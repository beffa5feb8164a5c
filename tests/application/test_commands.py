import json

import pytest
from protean import current_domain
from protean.exceptions import ValidationError
from storefront.cart.cart import ShoppingCart
from storefront.cart.management import ClearCart, MergeSessionCart, SetCartItem
from storefront.catalogue.management import CreateProduct
from storefront.catalogue.product import Product
from storefront.customer.registration import AddAddress, RegisterUser, RemoveAddress, UpdateAddress
from storefront.customer.user import User
from storefront.discount.discount import DiscountCode
from storefront.discount.management import CreateDiscount, ToggleDiscount
from storefront.errors import AddressNotFound, InsufficientStock
from storefront.notifications import set_sink
from storefront.notifications.memory_adapter import MemorySink
from storefront.order.history import orders_for
from storefront.order.order import Order, generate_order_number
from storefront.order.status import UpdateOrderStatus
from storefront.pricing import engine
from storefront.pricing.engine import PricedLine


def _process(command):
    return current_domain.process(command, asynchronous=False)


class TestCreateProduct:
    def test_creates_product_with_variants(self):
        product_id = _process(
            CreateProduct(
                name="Ao khoac",
                category="Ao",
                brand="Local",
                base_price=800_000,
                variants=json.dumps(
                    [
                        {"sku": "JK-M", "name": "M", "price": 800_000, "inventory": 4},
                        {"sku": "JK-L", "name": "L", "price": 820_000, "inventory": 2},
                    ]
                ),
            )
        )

        product = current_domain.repository_for(Product).get(product_id)
        assert sorted(v.inventory for v in product.variants) == [2, 4]


class TestRegistration:
    def test_register_and_add_address(self):
        user_id = _process(RegisterUser(email="Binh@Example.com", full_name="Binh", password="secret1"))
        address_id = _process(AddAddress(user_id=user_id, street="5 Tran Phu", city="Hai Chau", province="Da Nang"))

        user = current_domain.repository_for(User).get(user_id)
        assert user.email == "binh@example.com"
        assert str(user.default_address.id) == address_id

    def test_duplicate_email(self, make_user):
        make_user(email="dup@example.com")

        with pytest.raises(ValidationError) as exc:
            _process(RegisterUser(email="DUP@example.com", full_name="Dup", password="secret1"))
        assert exc.value.messages["email"] == ["An account with this email already exists"]


class TestDiscountManagement:
    def test_create_and_toggle(self):
        discount_id = _process(CreateDiscount(code="new10", value_type="percent", value=10, usage_limit=10))

        assert _process(ToggleDiscount(discount_id=discount_id)) is False
        discount = current_domain.repository_for(DiscountCode).get(discount_id)
        assert discount.code == "NEW10"
        assert discount.is_active is False

    def test_duplicate_code(self, make_discount):
        make_discount(code="SAME1")

        with pytest.raises(ValidationError) as exc:
            _process(CreateDiscount(code="same1", value_type="fixed", value=1000, usage_limit=1))
        assert exc.value.messages["code"] == ["Discount code already exists"]


class TestCartCommands:
    def test_set_item_captures_live_price(self, make_product):
        product = make_product()
        variant = product.variants[0]

        _process(SetCartItem(session_id="sess-1", product_id=product.id, variant_id=variant.id, quantity=2))

        cart = current_domain.repository_for(ShoppingCart).find_for_session("sess-1")
        assert cart.line_items()[0]["price"] == 200_000
        assert cart.total_amount == 400_000

    def test_set_item_beyond_stock(self, make_product):
        product = make_product()

        with pytest.raises(InsufficientStock):
            _process(
                SetCartItem(session_id="sess-1", product_id=product.id, variant_id=product.variants[0].id, quantity=11)
            )

    def test_guest_cart_needs_session(self, make_product):
        product = make_product()

        with pytest.raises(ValidationError) as exc:
            _process(SetCartItem(product_id=product.id, variant_id=product.variants[0].id, quantity=1))
        assert exc.value.messages["session_id"] == ["Session ID required for guest cart"]

    def test_clear_cart(self, make_product):
        product = make_product()
        _process(SetCartItem(session_id="sess-1", product_id=product.id, variant_id=product.variants[0].id, quantity=1))

        _process(ClearCart(session_id="sess-1"))

        assert current_domain.repository_for(ShoppingCart).find_for_session("sess-1").items == []

    def test_merge_transfers_session_cart_to_user_without_cart(self, make_product, make_user):
        product = make_product()
        user = make_user()
        _process(SetCartItem(session_id="sess-1", product_id=product.id, variant_id=product.variants[0].id, quantity=1))

        _process(MergeSessionCart(user_id=user.id, session_id="sess-1"))

        repo = current_domain.repository_for(ShoppingCart)
        assert repo.find_for_session("sess-1") is None
        assert len(repo.find_for_user(user.id).items) == 1

    def test_merge_folds_items_into_existing_user_cart(self, make_product, make_user):
        product = make_product()
        user = make_user()
        variant_id = product.variants[0].id
        _process(SetCartItem(user_id=user.id, product_id=product.id, variant_id=variant_id, quantity=1))
        _process(SetCartItem(session_id="sess-1", product_id=product.id, variant_id=variant_id, quantity=2))

        _process(MergeSessionCart(user_id=user.id, session_id="sess-1"))

        repo = current_domain.repository_for(ShoppingCart)
        assert repo.find_for_session("sess-1") is None
        assert repo.find_for_user(user.id).items[0].quantity == 3


def _place_order(user_id="u-1"):
    order = Order.place(
        order_number=generate_order_number(),
        user_id=user_id,
        lines=[
            {
                "product_id": "p-1",
                "variant_id": "v-1",
                "product_name": "Ao",
                "variant_name": "M",
                "sku": "A-M",
                "price": 100_000,
                "quantity": 1,
            }
        ],
        shipping_address={"street": "s", "city": "c", "province": "p"},
        payment_method="cod",
        breakdown=engine.quote([PricedLine("p-1", "v-1", 100_000, 1)]),
    )
    current_domain.repository_for(Order).add(order)
    return order


class TestOrderStatus:
    def test_update_status_is_persisted(self):
        order = _place_order()

        _process(UpdateOrderStatus(order_id=order.id, status="confirmed", note="Stock checked"))

        stored = current_domain.repository_for(Order).get(order.id)
        assert stored.current_status == "confirmed"
        assert [h.status for h in stored.status_history] == ["pending", "confirmed"]

    def test_status_change_is_announced(self):
        sink = MemorySink()
        set_sink(sink)
        order = _place_order()

        _process(UpdateOrderStatus(order_id=order.id, status="confirmed", note="Stock checked"))

        [payload] = sink.events("order_status_updated")
        assert payload["order_id"] == str(order.id)
        assert payload["previous_status"] == "pending"
        assert payload["status"] == "confirmed"
        assert payload["note"] == "Stock checked"

    def test_announcement_failure_does_not_undo_the_update(self):
        sink = MemorySink()
        sink.configure(should_succeed=False)
        set_sink(sink)
        order = _place_order()

        _process(UpdateOrderStatus(order_id=order.id, status="cancelled"))

        assert current_domain.repository_for(Order).get(order.id).current_status == "cancelled"


class TestOrderHistory:
    def test_orders_listed_newest_first(self):
        first = _place_order(user_id="u-1")
        second = _place_order(user_id="u-1")
        _place_order(user_id="u-2")

        entries, total = orders_for("u-1")

        assert total == 2
        assert [e.order_id for e in entries] == [str(second.id), str(first.id)]

    def test_pagination(self):
        for _ in range(3):
            _place_order(user_id="u-1")

        first_page, total = orders_for("u-1", page=1, limit=2)
        second_page, _ = orders_for("u-1", page=2, limit=2)

        assert total == 3
        assert len(first_page) == 2
        assert len(second_page) == 1

    def test_status_changes_reach_the_listing(self):
        order = _place_order(user_id="u-1")
        _process(UpdateOrderStatus(order_id=order.id, status="confirmed"))

        [entry], _ = orders_for("u-1")

        assert entry.current_status == "confirmed"
        assert entry.total_amount == order.total_amount


class TestAddressBook:
    def _user_with_two_addresses(self):
        user_id = _process(RegisterUser(email="book@example.com", full_name="Book", password="secret1"))
        home = _process(AddAddress(user_id=user_id, street="1 Home", city="Q1", province="HCM"))
        office = _process(AddAddress(user_id=user_id, street="2 Office", city="Q3", province="HCM", label="Office"))
        return user_id, home, office

    def _user(self, user_id):
        return current_domain.repository_for(User).get(user_id)

    def test_update_changes_only_given_fields(self):
        user_id, home, _ = self._user_with_two_addresses()

        _process(UpdateAddress(user_id=user_id, address_id=home, street="9 New Street"))

        address = self._user(user_id).find_address(home)
        assert address.street == "9 New Street"
        assert address.city == "Q1"

    def test_update_can_move_the_default(self):
        user_id, home, office = self._user_with_two_addresses()

        _process(UpdateAddress(user_id=user_id, address_id=office, is_default=True))

        user = self._user(user_id)
        assert str(user.default_address.id) == office
        assert sum(1 for a in user.addresses if a.is_default) == 1

    def test_remove_default_promotes_first_remaining(self):
        user_id, home, office = self._user_with_two_addresses()

        _process(RemoveAddress(user_id=user_id, address_id=home))

        user = self._user(user_id)
        assert [str(a.id) for a in user.addresses] == [office]
        assert str(user.default_address.id) == office

    def test_unknown_address(self):
        user_id, _, _ = self._user_with_two_addresses()

        with pytest.raises(AddressNotFound):
            _process(RemoveAddress(user_id=user_id, address_id="missing"))
