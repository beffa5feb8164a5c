"""Discount Ledger: validity checks and usage accounting for discount codes.

``check`` is read-only and is what preview and the public validation
endpoint use. ``redeem`` re-reads the code under its lock, so the usage
count and the usage-history append land as one write and concurrent
redemptions cannot push the count past the limit.
"""

from dataclasses import dataclass

import structlog
from protean.utils.globals import current_domain

from storefront.discount.discount import DiscountCode
from storefront.errors import DiscountInvalid
from storefront.utils.locks import discount_locks

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class DiscountApplication:
    """A recorded redemption, kept so the checkout can revoke it."""

    discount_id: str
    code: str
    user_id: str
    order_id: str


def _normalize(code: str) -> str:
    return (code or "").strip().upper()


def find(code: str) -> DiscountCode | None:
    return current_domain.repository_for(DiscountCode).find_by_code(_normalize(code))


def check(code: str) -> DiscountCode:
    """Return the code if it can be redeemed now.

    Raises ``DiscountInvalid`` for unknown or deactivated codes and
    ``DiscountExpired`` for codes at their usage limit.
    """
    discount = find(code)
    if discount is None:
        raise DiscountInvalid(_normalize(code))
    discount.ensure_redeemable()
    return discount


def redeem(code: str, user_id, order_id) -> DiscountApplication:
    normalized = _normalize(code)
    with discount_locks.hold(normalized):
        discount = check(normalized)
        discount.record_usage(user_id, order_id)
        current_domain.repository_for(DiscountCode).add(discount)

    logger.info(
        "discount_redeemed",
        code=normalized,
        user_id=str(user_id),
        order_id=str(order_id),
        used_count=discount.used_count,
        usage_limit=discount.usage_limit,
    )
    return DiscountApplication(
        discount_id=str(discount.id),
        code=normalized,
        user_id=str(user_id),
        order_id=str(order_id),
    )


def revoke(application: DiscountApplication) -> None:
    """Undo a redemption: drop its usage record and give the use back."""
    with discount_locks.hold(application.code):
        repo = current_domain.repository_for(DiscountCode)
        discount = repo.get(application.discount_id)
        discount.revert_usage(application.order_id)
        repo.add(discount)

    logger.info("discount_redemption_revoked", code=application.code, order_id=application.order_id)
