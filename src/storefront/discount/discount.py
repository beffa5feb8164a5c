"""DiscountCode aggregate with its append-only usage history."""

import re
from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Identifier, Integer, String

from storefront.discount.events import (
    DiscountCreated,
    DiscountRedeemed,
    DiscountRedemptionRevoked,
    DiscountToggled,
)
from storefront.domain import storefront
from storefront.errors import DiscountExpired, DiscountInvalid
from storefront.pricing.engine import DiscountTerms, discount_amount_for

CODE_PATTERN = re.compile(r"^[A-Z0-9]{5}$")
MAX_USAGE_LIMIT = 10


class DiscountType(Enum):
    PERCENT = "percent"
    FIXED = "fixed"


@storefront.entity(part_of="DiscountCode")
class DiscountUsage:
    """One redemption: who used the code, on which order, and when."""

    user_id = Identifier(required=True)
    order_id = Identifier(required=True)
    used_at = DateTime(required=True)


@storefront.aggregate
class DiscountCode:
    """A shareable code worth a percentage or a fixed amount off the subtotal.

    A code can be redeemed ``usage_limit`` times. ``used_count`` and the
    usage history always move together and the count never passes the limit.
    """

    code = String(required=True, max_length=5, unique=True)
    value_type = String(required=True, choices=DiscountType)
    value = Integer(required=True, min_value=0)
    usage_limit = Integer(required=True, min_value=1, max_value=MAX_USAGE_LIMIT)
    used_count = Integer(default=0, min_value=0)
    is_active = Boolean(default=True)
    created_by = Identifier()
    usage_history = HasMany(DiscountUsage)
    created_at = DateTime()
    updated_at = DateTime()

    @invariant.post
    def used_count_cannot_exceed_usage_limit(self):
        if self.used_count is not None and self.usage_limit is not None and self.used_count > self.usage_limit:
            raise ValidationError({"used_count": ["Usage count cannot exceed the usage limit"]})

    @invariant.post
    def percent_value_cannot_exceed_hundred(self):
        if self.value_type == DiscountType.PERCENT.value and self.value is not None and self.value > 100:
            raise ValidationError({"value": ["Percent discounts cannot exceed 100"]})

    @classmethod
    def create(cls, code, value_type, value, usage_limit, created_by=None):
        code = (code or "").strip().upper()
        if not CODE_PATTERN.match(code):
            raise ValidationError({"code": ["Code must be 5 alphanumeric characters"]})
        if usage_limit > MAX_USAGE_LIMIT:
            raise ValidationError({"usage_limit": [f"Usage limit cannot exceed {MAX_USAGE_LIMIT}"]})

        now = datetime.now(UTC)
        discount = cls(
            code=code,
            value_type=value_type,
            value=value,
            usage_limit=usage_limit,
            used_count=0,
            is_active=True,
            created_by=created_by,
            created_at=now,
            updated_at=now,
        )
        discount.raise_(
            DiscountCreated(
                discount_id=str(discount.id),
                code=code,
                value_type=value_type,
                value=value,
                usage_limit=usage_limit,
                created_by=str(created_by) if created_by else None,
                created_at=now,
            )
        )
        return discount

    @property
    def remaining_uses(self) -> int:
        return max(self.usage_limit - self.used_count, 0)

    def is_valid(self) -> bool:
        return bool(self.is_active) and self.used_count < self.usage_limit

    def terms(self) -> DiscountTerms:
        return DiscountTerms(code=self.code, value_type=self.value_type, value=self.value)

    def calculate_discount(self, subtotal: int) -> int:
        if not self.is_valid():
            return 0
        return discount_amount_for(subtotal, self.terms())

    def ensure_redeemable(self):
        """Raise the specific reason this code cannot be used right now."""
        if not self.is_active:
            raise DiscountInvalid(self.code)
        if self.used_count >= self.usage_limit:
            raise DiscountExpired(self.code, self.used_count, self.usage_limit)

    def record_usage(self, user_id, order_id):
        self.ensure_redeemable()

        now = datetime.now(UTC)
        with atomic_change(self):
            self.used_count += 1
            self.add_usage_history(DiscountUsage(user_id=str(user_id), order_id=str(order_id), used_at=now))
            self.updated_at = now

        self.raise_(
            DiscountRedeemed(
                discount_id=str(self.id),
                code=self.code,
                user_id=str(user_id),
                order_id=str(order_id),
                used_count=self.used_count,
                usage_limit=self.usage_limit,
                used_at=now,
            )
        )

    def revert_usage(self, order_id):
        usage = next((u for u in self.usage_history if str(u.order_id) == str(order_id)), None)
        if usage is None:
            raise ValidationError({"usage_history": [f"No redemption recorded for order {order_id}"]})

        now = datetime.now(UTC)
        with atomic_change(self):
            self.remove_usage_history(usage)
            self.used_count = max(self.used_count - 1, 0)
            self.updated_at = now

        self.raise_(
            DiscountRedemptionRevoked(
                discount_id=str(self.id),
                code=self.code,
                order_id=str(order_id),
                used_count=self.used_count,
                revoked_at=now,
            )
        )

    def toggle(self):
        now = datetime.now(UTC)
        self.is_active = not self.is_active
        self.updated_at = now
        self.raise_(
            DiscountToggled(
                discount_id=str(self.id),
                code=self.code,
                is_active=self.is_active,
                toggled_at=now,
            )
        )


@storefront.repository(part_of=DiscountCode)
class DiscountCodeRepository:
    def find_by_code(self, code: str) -> DiscountCode | None:
        return self._dao.query.filter(code=(code or "").strip().upper()).all().first

    def list_recent(self, page: int = 1, limit: int = 20):
        """One page of codes, newest first, as ``(codes, total)``."""
        result = self._dao.query.order_by("-created_at").offset((page - 1) * limit).limit(limit).all()
        return result.items, result.total
