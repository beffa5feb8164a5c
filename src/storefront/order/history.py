"""Order history: a per-customer listing of orders, newest first."""

import json

from protean.core.projector import on
from protean.fields import Boolean, DateTime, Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.order.events import OrderPlaced, OrderStatusUpdated
from storefront.order.order import Order


@storefront.projection
class OrderHistory:
    order_id = Identifier(identifier=True, required=True)
    user_id = Identifier(required=True)
    order_number = String(required=True)
    current_status = String(required=True)
    item_count = Integer(default=0)
    total_amount = Integer(default=0)
    is_paid = Boolean(default=False)
    created_at = DateTime()
    updated_at = DateTime()


@storefront.projector(projector_for=OrderHistory, aggregates=[Order])
class OrderHistoryProjector:
    @on(OrderPlaced)
    def on_order_placed(self, event):
        items = json.loads(event.items) if isinstance(event.items, str) else []
        current_domain.repository_for(OrderHistory).add(
            OrderHistory(
                order_id=event.order_id,
                user_id=event.user_id,
                order_number=event.order_number,
                current_status="pending",
                item_count=sum(item.get("quantity", 0) for item in items),
                total_amount=event.total_amount,
                is_paid=event.is_paid,
                created_at=event.placed_at,
                updated_at=event.placed_at,
            )
        )

    @on(OrderStatusUpdated)
    def on_status_updated(self, event):
        repo = current_domain.repository_for(OrderHistory)
        entry = repo.get(event.order_id)
        entry.current_status = event.status
        entry.updated_at = event.updated_at
        if event.marked_paid:
            entry.is_paid = True
        repo.add(entry)


def orders_for(user_id, page: int = 1, limit: int = 10):
    """One page of a customer's orders, newest first.

    Returns ``(entries, total)`` where ``total`` counts every order the
    customer has placed.
    """
    result = (
        current_domain.repository_for(OrderHistory)
        ._dao.query.filter(user_id=str(user_id))
        .order_by("-created_at")
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    return result.items, result.total
