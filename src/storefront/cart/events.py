"""Domain events for the ShoppingCart aggregate."""

from protean.fields import Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="ShoppingCart")
class CartItemAdded:
    """A variant was put into the cart at its current price."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    quantity = Integer(required=True)
    price = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartQuantityUpdated:
    """The quantity of a cart item was changed and its price refreshed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)
    previous_quantity = Integer(required=True)
    new_quantity = Integer(required=True)
    price = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartItemRemoved:
    __version__ = 1

    cart_id = Identifier(required=True)
    item_id = Identifier(required=True)


@storefront.event(part_of="ShoppingCart")
class CartCleared:
    """Every item was removed, either by the shopper or by a completed checkout."""

    __version__ = 1

    cart_id = Identifier(required=True)
    items_removed = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartRestored:
    """Items cleared by a checkout were put back after the checkout failed."""

    __version__ = 1

    cart_id = Identifier(required=True)
    items_restored = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartsMerged:
    """A session cart's items were merged into a signed-in user's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    source_session_id = String()
    items_merged_count = Integer(required=True)


@storefront.event(part_of="ShoppingCart")
class CartOwnershipTransferred:
    """A session cart became the signed-in user's cart."""

    __version__ = 1

    cart_id = Identifier(required=True)
    user_id = Identifier(required=True)
    previous_session_id = String()
