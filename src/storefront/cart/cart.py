"""Shopping Cart aggregate: pending line items keyed by a user or a session.

A cart belongs to exactly one owner key at a time. Signing in transfers a
session cart to the user rather than copying it. Prices are captured when an
item is added but are never trusted at checkout, which re-reads live
variants.
"""

from datetime import UTC, datetime

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer, String

from storefront.cart.events import (
    CartCleared,
    CartItemAdded,
    CartItemRemoved,
    CartOwnershipTransferred,
    CartQuantityUpdated,
    CartRestored,
    CartsMerged,
)
from storefront.domain import storefront


@storefront.entity(part_of="ShoppingCart")
class CartItem:
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)
    price = Integer(required=True, min_value=0)
    added_at = DateTime()

    def snapshot(self) -> dict:
        return {
            "product_id": str(self.product_id),
            "variant_id": str(self.variant_id),
            "quantity": self.quantity,
            "price": self.price,
        }


@storefront.aggregate
class ShoppingCart:
    user_id = Identifier()
    session_id = String(max_length=255)
    items = HasMany(CartItem)
    total_amount = Integer(default=0)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def cart_has_exactly_one_owner(self):
        if bool(self.user_id) == bool(self.session_id):
            raise ValidationError({"cart": ["A cart belongs to exactly one of a user or a session"]})

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, user_id=None, session_id=None):
        now = datetime.now(UTC)
        return cls(
            user_id=user_id,
            session_id=None if user_id else session_id,
            total_amount=0,
            created_at=now,
            updated_at=now,
        )

    def _find(self, product_id, variant_id):
        return next(
            (i for i in self.items if str(i.product_id) == str(product_id) and str(i.variant_id) == str(variant_id)),
            None,
        )

    def _recalculate_total(self):
        self.total_amount = sum(item.price * item.quantity for item in self.items)
        self.updated_at = datetime.now(UTC)

    def line_items(self) -> list[dict]:
        return [item.snapshot() for item in self.items]

    # -------------------------------------------------------------------
    # Item management
    # -------------------------------------------------------------------
    def set_item(self, product_id, variant_id, quantity, price):
        """Set a variant's quantity; zero removes it. ``price`` is the live variant price."""
        if quantity < 0:
            raise ValidationError({"quantity": ["Quantity cannot be negative"]})

        existing = self._find(product_id, variant_id)
        if quantity == 0:
            if existing is not None:
                self.remove_item(existing.id)
            return

        if existing is not None:
            previous_quantity = existing.quantity
            existing.quantity = quantity
            existing.price = price
            self._recalculate_total()
            self.raise_(
                CartQuantityUpdated(
                    cart_id=str(self.id),
                    item_id=str(existing.id),
                    previous_quantity=previous_quantity,
                    new_quantity=quantity,
                    price=price,
                )
            )
            return

        item = CartItem(
            product_id=product_id,
            variant_id=variant_id,
            quantity=quantity,
            price=price,
            added_at=datetime.now(UTC),
        )
        self.add_items(item)
        self._recalculate_total()
        self.raise_(
            CartItemAdded(
                cart_id=str(self.id),
                item_id=str(item.id),
                product_id=str(product_id),
                variant_id=str(variant_id),
                quantity=quantity,
                price=price,
            )
        )

    def remove_item(self, item_id):
        item = next((i for i in self.items if str(i.id) == str(item_id)), None)
        if item is None:
            raise ValidationError({"item_id": ["Item not found in cart"]})

        self.remove_items(item)
        self._recalculate_total()
        self.raise_(CartItemRemoved(cart_id=str(self.id), item_id=str(item_id)))

    def clear(self) -> list[dict]:
        """Empty the cart and return what was in it."""
        removed = self.line_items()
        with atomic_change(self):
            for item in list(self.items):
                self.remove_items(item)
            self._recalculate_total()

        self.raise_(CartCleared(cart_id=str(self.id), items_removed=len(removed)))
        return removed

    def _absorb(self, line_items):
        now = datetime.now(UTC)
        with atomic_change(self):
            for line in line_items:
                existing = self._find(line["product_id"], line["variant_id"])
                if existing is not None:
                    existing.quantity += line["quantity"]
                else:
                    self.add_items(
                        CartItem(
                            product_id=line["product_id"],
                            variant_id=line["variant_id"],
                            quantity=line["quantity"],
                            price=line["price"],
                            added_at=now,
                        )
                    )
            self._recalculate_total()

    def restore(self, line_items):
        """Put back items removed by ``clear``, merging with anything added since."""
        self._absorb(line_items)
        self.raise_(CartRestored(cart_id=str(self.id), items_restored=len(line_items)))

    # -------------------------------------------------------------------
    # Sign-in
    # -------------------------------------------------------------------
    def transfer_to(self, user_id):
        """Hand a session cart over to a user who has no cart of their own."""
        previous_session_id = self.session_id
        with atomic_change(self):
            self.user_id = user_id
            self.session_id = None
            self.updated_at = datetime.now(UTC)

        self.raise_(
            CartOwnershipTransferred(
                cart_id=str(self.id),
                user_id=str(user_id),
                previous_session_id=previous_session_id,
            )
        )

    def merge_items(self, line_items, source_session_id=None):
        """Fold another cart's items into this one, summing quantities."""
        self._absorb(line_items)
        self.raise_(
            CartsMerged(
                cart_id=str(self.id),
                source_session_id=source_session_id,
                items_merged_count=len(line_items),
            )
        )


@storefront.repository(part_of=ShoppingCart)
class ShoppingCartRepository:
    def find_for_user(self, user_id) -> ShoppingCart | None:
        return self._dao.query.filter(user_id=str(user_id)).all().first

    def find_for_session(self, session_id) -> ShoppingCart | None:
        return self._dao.query.filter(session_id=session_id).all().first

    def find_for_owner(self, user_id=None, session_id=None) -> ShoppingCart | None:
        if user_id:
            return self.find_for_user(user_id)
        if session_id:
            return self.find_for_session(session_id)
        return None
