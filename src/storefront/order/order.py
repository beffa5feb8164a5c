"""Order aggregate (Event Sourced): the record of one commercial transaction.

An order is written once, at the end of a successful checkout, with line and
address snapshots copied from the catalogue and the address book. After
that only its status (with an append-only history) and its paid flag
change.

Status flow:
    pending → confirmed → shipping → delivered
    pending / confirmed → cancelled
"""

import json
import secrets
from datetime import UTC, datetime
from enum import Enum
from uuid import uuid4

from protean import apply
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String, ValueObject

from storefront.domain import storefront
from storefront.order.events import OrderPlaced, OrderStatusUpdated

COD = "cod"
PAYMENT_METHOD_MAX_LENGTH = 30


class OrderStatus(Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    SHIPPING = "shipping"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


_VALID_TRANSITIONS = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPING, OrderStatus.CANCELLED},
    OrderStatus.SHIPPING: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: set(),
    OrderStatus.CANCELLED: set(),
}


def generate_order_number(now=None) -> str:
    now = now or datetime.now(UTC)
    return f"ORD-{now:%Y%m%d}-{secrets.token_hex(3).upper()}"


def check_payment_method(payment_method) -> str:
    payment_method = payment_method or COD
    if len(payment_method) > PAYMENT_METHOD_MAX_LENGTH:
        raise ValidationError(
            {"payment_method": [f"Payment method must be at most {PAYMENT_METHOD_MAX_LENGTH} characters"]}
        )
    return payment_method


def totals_balance(subtotal, discount_amount, points_discount, tax_amount, shipping_fee, total_amount) -> bool:
    return total_amount == subtotal - discount_amount - points_discount + tax_amount + shipping_fee


@storefront.value_object(part_of="Order")
class ShippingAddress:
    """Where the order ships, as it read when the order was placed."""

    label = String(max_length=50)
    full_name = String(max_length=255)
    phone = String(max_length=20)
    street = String(required=True, max_length=255)
    city = String(required=True, max_length=100)
    province = String(required=True, max_length=100)
    country = String(max_length=100, default="Vietnam")


@storefront.entity(part_of="Order")
class OrderLine:
    """A purchased variant with name, SKU and price copied at order time."""

    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    product_name = String(required=True, max_length=255)
    variant_name = String(required=True, max_length=255)
    sku = String(required=True, max_length=50)
    price = Integer(required=True, min_value=0)
    quantity = Integer(required=True, min_value=1)
    subtotal = Integer(required=True, min_value=0)


@storefront.entity(part_of="Order")
class StatusEntry:
    status = String(required=True, choices=OrderStatus)
    time = DateTime(required=True)
    note = String(max_length=500)


@storefront.aggregate(is_event_sourced=True)
class Order:
    order_number = String(max_length=30)
    user_id = Identifier(required=True)
    items = HasMany(OrderLine)
    shipping_address = ValueObject(ShippingAddress)
    payment_method = String(max_length=PAYMENT_METHOD_MAX_LENGTH, default=COD)
    subtotal = Integer(default=0)
    discount_code = String(max_length=5)
    discount_amount = Integer(default=0)
    points_used = Integer(default=0)
    points_discount = Integer(default=0)
    tax_amount = Integer(default=0)
    shipping_fee = Integer(default=0)
    total_amount = Integer(default=0)
    points_earned = Integer(default=0)
    current_status = String(choices=OrderStatus, default=OrderStatus.PENDING.value)
    status_history = HasMany(StatusEntry)
    is_paid = Boolean(default=False)
    paid_at = DateTime()
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory method
    # -------------------------------------------------------------------
    @classmethod
    def place(cls, order_number, user_id, lines, shipping_address, payment_method, breakdown):
        """Record a completed checkout.

        Args:
            lines: List of dicts with product_id, variant_id, product_name,
                   variant_name, sku, price and quantity.
            shipping_address: Dict matching ``ShippingAddress``.
            breakdown: The ``PriceBreakdown`` frozen before commit.

        The returned order is not stored; its identity is known immediately so
        ledger entries written before it is persisted can reference it.
        """
        if not totals_balance(
            breakdown.subtotal,
            breakdown.discount_amount,
            breakdown.points_discount,
            breakdown.tax_amount,
            breakdown.shipping_fee,
            breakdown.total_amount,
        ):
            raise ValidationError({"total_amount": ["Order totals do not balance"]})

        now = datetime.now(UTC)
        payment_method = check_payment_method(payment_method)
        is_paid = payment_method != COD

        items = [
            {
                **line,
                "id": str(uuid4()),
                "product_id": str(line["product_id"]),
                "variant_id": str(line["variant_id"]),
                "subtotal": line["price"] * line["quantity"],
            }
            for line in lines
        ]

        order = cls._create_new()
        order.raise_(
            OrderPlaced(
                order_id=str(order.id),
                order_number=order_number,
                user_id=str(user_id),
                items=json.dumps(items),
                shipping_address=json.dumps(shipping_address),
                payment_method=payment_method,
                subtotal=breakdown.subtotal,
                discount_code=breakdown.discount_code,
                discount_amount=breakdown.discount_amount,
                points_used=breakdown.points_used,
                points_discount=breakdown.points_discount,
                tax_amount=breakdown.tax_amount,
                shipping_fee=breakdown.shipping_fee,
                total_amount=breakdown.total_amount,
                points_earned=breakdown.points_earned,
                is_paid=is_paid,
                paid_at=now if is_paid else None,
                history_entry_id=str(uuid4()),
                placed_at=now,
            )
        )
        return order

    def balances(self) -> bool:
        return totals_balance(
            self.subtotal,
            self.discount_amount,
            self.points_discount,
            self.tax_amount,
            self.shipping_fee,
            self.total_amount,
        )

    # -------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------
    def update_status(self, status, note=None):
        try:
            target = OrderStatus(status)
        except ValueError as exc:
            raise ValidationError({"status": [f"Unknown order status: {status}"]}) from exc

        current = OrderStatus(self.current_status)
        if target not in _VALID_TRANSITIONS[current]:
            raise ValidationError({"status": [f"Cannot transition from {current.value} to {target.value}"]})

        self.raise_(
            OrderStatusUpdated(
                order_id=str(self.id),
                order_number=self.order_number,
                previous_status=current.value,
                status=target.value,
                note=note,
                history_entry_id=str(uuid4()),
                marked_paid=target == OrderStatus.DELIVERED and not self.is_paid,
                updated_at=datetime.now(UTC),
            )
        )

    # -------------------------------------------------------------------
    # @apply methods: rebuild state during event replay
    # -------------------------------------------------------------------
    @apply
    def _on_order_placed(self, event: OrderPlaced):
        self.id = event.order_id
        self.order_number = event.order_number
        self.user_id = event.user_id
        self.payment_method = event.payment_method
        self.subtotal = event.subtotal
        self.discount_code = event.discount_code
        self.discount_amount = event.discount_amount
        self.points_used = event.points_used
        self.points_discount = event.points_discount
        self.tax_amount = event.tax_amount
        self.shipping_fee = event.shipping_fee
        self.total_amount = event.total_amount
        self.points_earned = event.points_earned
        self.is_paid = event.is_paid
        self.paid_at = event.paid_at
        self.current_status = OrderStatus.PENDING.value
        self.created_at = event.placed_at
        self.updated_at = event.placed_at

        items_data = json.loads(event.items) if isinstance(event.items, str) else []
        self.items = [OrderLine(**item_data) for item_data in items_data]

        ship_data = json.loads(event.shipping_address) if isinstance(event.shipping_address, str) else {}
        if ship_data:
            self.shipping_address = ShippingAddress(**ship_data)

        self.status_history = [
            StatusEntry(
                id=event.history_entry_id,
                status=OrderStatus.PENDING.value,
                time=event.placed_at,
                note="Order placed",
            )
        ]

    @apply
    def _on_status_updated(self, event: OrderStatusUpdated):
        self.current_status = event.status
        self.updated_at = event.updated_at

        existing = next(
            (e for e in (self.status_history or []) if str(e.id) == str(event.history_entry_id)),
            None,
        )
        if not existing:
            self.add_status_history(
                StatusEntry(
                    id=event.history_entry_id,
                    status=event.status,
                    time=event.updated_at,
                    note=event.note,
                )
            )

        if event.marked_paid:
            self.is_paid = True
            self.paid_at = event.updated_at
