"""Cart Store: the checkout's view of carts, addressed by owner key."""

from dataclasses import dataclass, field

import structlog
from protean.utils.globals import current_domain

from storefront.cart.cart import ShoppingCart

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ClearedCart:
    """What a checkout removed from a cart, kept so it can be put back."""

    cart_id: str
    line_items: list[dict] = field(default_factory=list)


class CartStore:
    @property
    def _repo(self):
        return current_domain.repository_for(ShoppingCart)

    def read(self, user_id=None, session_id=None) -> ShoppingCart | None:
        return self._repo.find_for_owner(user_id=user_id, session_id=session_id)

    def clear(self, user_id=None, session_id=None) -> ClearedCart | None:
        """Empty the owner's cart. Returns None when there is nothing to clear."""
        cart = self.read(user_id=user_id, session_id=session_id)
        if cart is None or not cart.items:
            return None

        removed = cart.clear()
        self._repo.add(cart)
        logger.info("cart_cleared", cart_id=str(cart.id), items_removed=len(removed))
        return ClearedCart(cart_id=str(cart.id), line_items=removed)

    def restore(self, cleared: ClearedCart) -> None:
        cart = self._repo.get(cleared.cart_id)
        cart.restore(cleared.line_items)
        self._repo.add(cart)
        logger.info("cart_restored", cart_id=cleared.cart_id, items_restored=len(cleared.line_items))
