"""Domain events for the DiscountCode aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="DiscountCode")
class DiscountCreated:
    """An administrator issued a new discount code."""

    __version__ = 1

    discount_id = Identifier(required=True)
    code = String(required=True)
    value_type = String(required=True)
    value = Integer(required=True)
    usage_limit = Integer(required=True)
    created_by = Identifier()
    created_at = DateTime(required=True)


@storefront.event(part_of="DiscountCode")
class DiscountRedeemed:
    """A checkout consumed one use of a discount code."""

    __version__ = 1

    discount_id = Identifier(required=True)
    code = String(required=True)
    user_id = Identifier(required=True)
    order_id = Identifier(required=True)
    used_count = Integer(required=True)
    usage_limit = Integer(required=True)
    used_at = DateTime(required=True)


@storefront.event(part_of="DiscountCode")
class DiscountRedemptionRevoked:
    """A redemption was rolled back because its checkout did not complete."""

    __version__ = 1

    discount_id = Identifier(required=True)
    code = String(required=True)
    order_id = Identifier(required=True)
    used_count = Integer(required=True)
    revoked_at = DateTime(required=True)


@storefront.event(part_of="DiscountCode")
class DiscountToggled:
    __version__ = 1

    discount_id = Identifier(required=True)
    code = String(required=True)
    is_active = Boolean(required=True)
    toggled_at = DateTime(required=True)
