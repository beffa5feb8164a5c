"""Domain events for the Order aggregate.

Order state is rebuilt from these events, so each one carries everything
its ``@apply`` handler needs. Nested structures travel as JSON text.
"""

from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from storefront.domain import storefront


@storefront.event(part_of="Order")
class OrderPlaced:
    """A checkout completed and the order was recorded with its frozen pricing."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of line snapshots
    shipping_address = Text(required=True)  # JSON: address snapshot
    payment_method = String(required=True)
    subtotal = Integer(required=True)
    discount_code = String()
    discount_amount = Integer(required=True)
    points_used = Integer(required=True)
    points_discount = Integer(required=True)
    tax_amount = Integer(required=True)
    shipping_fee = Integer(required=True)
    total_amount = Integer(required=True)
    points_earned = Integer(required=True)
    is_paid = Boolean(required=True)
    paid_at = DateTime()
    history_entry_id = Identifier(required=True)
    placed_at = DateTime(required=True)


@storefront.event(part_of="Order")
class OrderStatusUpdated:
    """An administrator moved the order to a new status."""

    __version__ = 1

    order_id = Identifier(required=True)
    order_number = String(required=True)
    previous_status = String(required=True)
    status = String(required=True)
    note = String()
    history_entry_id = Identifier(required=True)
    marked_paid = Boolean(default=False)
    updated_at = DateTime(required=True)
