"""Domain events for the User aggregate."""

from protean.fields import Boolean, DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="User")
class UserRegistered:
    """An account was created, either by sign-up or implicitly at checkout."""

    __version__ = 1

    user_id: Identifier(required=True)
    email: String(required=True)
    full_name: String(required=True)
    role: String(required=True)
    is_guest_account: Boolean(required=True)
    registered_at: DateTime(required=True)


@storefront.event(part_of="User")
class AddressAdded:
    __version__ = 1

    user_id: Identifier(required=True)
    address_id: Identifier(required=True)
    street: String(required=True)
    city: String(required=True)
    province: String(required=True)
    country: String(required=True)
    is_default: Boolean(required=True)


@storefront.event(part_of="User")
class LoyaltyPointsAdjusted:
    """Points were redeemed and/or earned in one balance update."""

    __version__ = 1

    user_id: Identifier(required=True)
    debited: Integer(required=True)
    credited: Integer(required=True)
    previous_balance: Integer(required=True)
    new_balance: Integer(required=True)
    reason: String()
    adjusted_at: DateTime(required=True)


@storefront.event(part_of="User")
class AddressUpdated:
    __version__ = 1

    user_id: Identifier(required=True)
    address_id: Identifier(required=True)
    changed_fields: String()  # comma separated
    is_default: Boolean(required=True)


@storefront.event(part_of="User")
class AddressRemoved:
    __version__ = 1

    user_id: Identifier(required=True)
    address_id: Identifier(required=True)
    new_default_address_id: Identifier()
