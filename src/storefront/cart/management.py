"""Cart management: commands and handler.

Quantities are set, not incremented: zero removes the item. The price is
read from the live variant at the moment the item is set, and the requested
quantity must be in stock.
"""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.cart.cart import ShoppingCart
from storefront.domain import storefront
from storefront.errors import InsufficientStock
from storefront.inventory.ledger import load_product


@storefront.command(part_of="ShoppingCart")
class SetCartItem:
    user_id = Identifier()
    session_id = String(max_length=255)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=0)


@storefront.command(part_of="ShoppingCart")
class ClearCart:
    user_id = Identifier()
    session_id = String(max_length=255)


@storefront.command(part_of="ShoppingCart")
class MergeSessionCart:
    """Fold a guest session's cart into a signed-in user's cart."""

    user_id = Identifier(required=True)
    session_id = String(required=True, max_length=255)


def _require_owner(command):
    if not command.user_id and not command.session_id:
        raise ValidationError({"session_id": ["Session ID required for guest cart"]})


@storefront.command_handler(part_of=ShoppingCart)
class ManageCartHandler:
    @handle(SetCartItem)
    def set_cart_item(self, command):
        _require_owner(command)
        repo = current_domain.repository_for(ShoppingCart)

        product = load_product(command.product_id)
        variant = product.get_variant(command.variant_id)
        if command.quantity and variant.inventory < command.quantity:
            raise InsufficientStock(
                product.id,
                variant.id,
                requested=command.quantity,
                available=variant.inventory,
                label=f"{product.name} - {variant.name}",
            )

        cart = repo.find_for_owner(user_id=command.user_id, session_id=command.session_id)
        if cart is None:
            if command.quantity == 0:
                return None
            cart = ShoppingCart.create(user_id=command.user_id, session_id=command.session_id)

        cart.set_item(command.product_id, command.variant_id, command.quantity, variant.price)
        repo.add(cart)
        return str(cart.id)

    @handle(ClearCart)
    def clear_cart(self, command):
        _require_owner(command)
        repo = current_domain.repository_for(ShoppingCart)
        cart = repo.find_for_owner(user_id=command.user_id, session_id=command.session_id)
        if cart is not None and cart.items:
            cart.clear()
            repo.add(cart)

    @handle(MergeSessionCart)
    def merge_session_cart(self, command):
        repo = current_domain.repository_for(ShoppingCart)
        session_cart = repo.find_for_session(command.session_id)
        if session_cart is None or not session_cart.items:
            return None

        user_cart = repo.find_for_user(command.user_id)
        if user_cart is None:
            session_cart.transfer_to(command.user_id)
            repo.add(session_cart)
            return str(session_cart.id)

        user_cart.merge_items(session_cart.line_items(), source_session_id=command.session_id)
        repo.add(user_cart)
        repo._dao.delete(session_cart)
        return str(user_cart.id)
