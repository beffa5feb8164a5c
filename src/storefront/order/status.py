"""Order status updates: command and handler."""

import structlog
from protean import handle
from protean.fields import Identifier, String
from protean.utils.globals import current_domain

from storefront.domain import storefront
from storefront.notifications import get_sink
from storefront.order.order import Order

logger = structlog.get_logger(__name__)


@storefront.command(part_of="Order")
class UpdateOrderStatus:
    """Move an order along its status flow; delivery marks it paid."""

    order_id = Identifier(required=True)
    status = String(required=True, max_length=20)
    note = String(max_length=500)


@storefront.command_handler(part_of=Order)
class OrderStatusHandler:
    @handle(UpdateOrderStatus)
    def update_order_status(self, command):
        repo = current_domain.repository_for(Order)
        order = repo.get(command.order_id)
        previous_status = order.current_status
        order.update_status(command.status, note=command.note)
        repo.add(order)

        try:
            get_sink().emit(
                "order_status_updated",
                {
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "user_id": str(order.user_id),
                    "previous_status": previous_status,
                    "status": order.current_status,
                    "note": command.note,
                    "is_paid": order.is_paid,
                },
            )
        except Exception as exc:
            logger.warning("order_notification_failed", order_id=str(order.id), error=str(exc))
