"""User aggregate root with its Address book and loyalty balance."""

from datetime import UTC, datetime
from enum import Enum

from protean import atomic_change, invariant
from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, HasMany, Integer, String

from storefront.customer.events import (
    AddressAdded,
    AddressRemoved,
    AddressUpdated,
    LoyaltyPointsAdjusted,
    UserRegistered,
)
from storefront.customer.tokens import hash_password, verify_password
from storefront.domain import storefront
from storefront.errors import AddressNotFound, InsufficientPoints

_ADDRESS_FIELDS = ("label", "full_name", "phone", "street", "city", "province", "country")


class Role(Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"


def normalize_email(email: str) -> str:
    """Lower-case and trim an email, rejecting structurally broken ones."""
    normalized = (email or "").strip().lower()
    if normalized.count("@") != 1 or " " in normalized:
        raise ValidationError({"email": [f"Invalid email address: {email!r}"]})

    local_part, domain_part = normalized.split("@", 1)
    if not local_part or not domain_part or "." not in domain_part:
        raise ValidationError({"email": [f"Invalid email address: {email!r}"]})
    if domain_part.startswith(".") or domain_part.endswith(".") or ".." in normalized:
        raise ValidationError({"email": [f"Invalid email address: {email!r}"]})
    return normalized


@storefront.entity(part_of="User")
class Address:
    """A delivery address in a user's address book."""

    label: String(default="Home", max_length=50)
    full_name: String(max_length=255)
    phone: String(max_length=20)
    street: String(required=True, max_length=255)
    city: String(required=True, max_length=100)
    province: String(required=True, max_length=100)
    country: String(default="Vietnam", max_length=100)
    is_default: Boolean(default=False)

    def snapshot(self) -> dict:
        return {field: getattr(self, field) for field in _ADDRESS_FIELDS}


@storefront.aggregate
class User:
    """A shopper or administrator.

    Guest accounts are created during checkout for shoppers who did not sign
    in; they hold a random credential and behave like any other account
    afterwards. ``loyalty_points`` is written only through the Loyalty Ledger.
    """

    email: String(required=True, max_length=254, unique=True)
    full_name: String(required=True, max_length=255)
    phone: String(max_length=20)
    password_hash: String(max_length=255)
    role: String(choices=Role, default=Role.CUSTOMER.value)
    addresses: HasMany(Address)
    loyalty_points: Integer(default=0, min_value=0)
    is_guest_account: Boolean(default=False)
    registered_at: DateTime()

    @invariant.post
    def at_most_one_default_address(self):
        if not self.addresses:
            return
        defaults = [a for a in self.addresses if a.is_default]
        if len(defaults) > 1:
            raise ValidationError({"addresses": ["Only one address can be marked as default"]})

    @classmethod
    def register(
        cls,
        email,
        full_name,
        phone=None,
        password=None,
        role=Role.CUSTOMER.value,
        is_guest_account=False,
    ):
        now = datetime.now(UTC)
        user = cls(
            email=normalize_email(email),
            full_name=full_name,
            phone=phone,
            password_hash=hash_password(password) if password else None,
            role=role,
            loyalty_points=0,
            is_guest_account=is_guest_account,
            registered_at=now,
        )
        user.raise_(
            UserRegistered(
                user_id=str(user.id),
                email=user.email,
                full_name=full_name,
                role=role,
                is_guest_account=is_guest_account,
                registered_at=now,
            )
        )
        return user

    @classmethod
    def register_guest(cls, email, full_name, credential, phone=None, address=None):
        """Create a guest account; ``address`` becomes its first, default address."""
        user = cls.register(
            email=email,
            full_name=full_name,
            phone=phone,
            password=credential,
            is_guest_account=True,
        )
        if address:
            user.add_address(**address, is_default=True)
        return user

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN.value

    def check_password(self, password) -> bool:
        return verify_password(password, self.password_hash)

    # -------------------------------------------------------------------
    # Address book
    # -------------------------------------------------------------------
    def add_address(
        self,
        street,
        city,
        province,
        country="Vietnam",
        label="Home",
        full_name=None,
        phone=None,
        is_default=False,
    ):
        if not self.addresses:
            is_default = True

        with atomic_change(self):
            if is_default:
                for addr in self.addresses:
                    if addr.is_default:
                        addr.is_default = False

            address = Address(
                label=label,
                full_name=full_name or self.full_name,
                phone=phone or self.phone,
                street=street,
                city=city,
                province=province,
                country=country or "Vietnam",
                is_default=is_default,
            )
            self.add_addresses(address)

        self.raise_(
            AddressAdded(
                user_id=str(self.id),
                address_id=str(address.id),
                street=street,
                city=city,
                province=province,
                country=address.country,
                is_default=is_default,
            )
        )
        return address

    def find_address(self, address_id):
        return next((a for a in self.addresses if str(a.id) == str(address_id)), None)

    def update_address(self, address_id, **changes):
        """Change fields of a saved address.

        Only the fields passed are touched. Marking an address as default
        clears the flag on every other address.
        """
        address = self.find_address(address_id)
        if address is None:
            raise AddressNotFound(address_id)

        unknown = set(changes) - set(_ADDRESS_FIELDS) - {"is_default"}
        if unknown:
            raise ValidationError({"address": [f"Unknown address fields: {', '.join(sorted(unknown))}"]})

        with atomic_change(self):
            if changes.get("is_default"):
                for addr in self.addresses:
                    if str(addr.id) != str(address.id) and addr.is_default:
                        addr.is_default = False
            for field, value in changes.items():
                setattr(address, field, value)

        self.raise_(
            AddressUpdated(
                user_id=str(self.id),
                address_id=str(address.id),
                changed_fields=",".join(sorted(changes)),
                is_default=bool(address.is_default),
            )
        )
        return address

    def remove_address(self, address_id):
        """Drop a saved address; if it was the default, the first remaining one takes over."""
        address = self.find_address(address_id)
        if address is None:
            raise AddressNotFound(address_id)

        was_default = address.is_default
        new_default = None
        with atomic_change(self):
            self.remove_addresses(address)
            if was_default and self.addresses:
                new_default = self.addresses[0]
                new_default.is_default = True

        self.raise_(
            AddressRemoved(
                user_id=str(self.id),
                address_id=str(address_id),
                new_default_address_id=str(new_default.id) if new_default else None,
            )
        )

    @property
    def default_address(self):
        return next((a for a in self.addresses if a.is_default), None)

    # -------------------------------------------------------------------
    # Loyalty balance (Loyalty Ledger only)
    # -------------------------------------------------------------------
    def adjust_points(self, debit=0, credit=0, reason=None):
        """Apply a redemption and an award as one balance change."""
        if debit < 0 or credit < 0:
            raise ValidationError({"loyalty_points": ["Point adjustments must not be negative"]})

        previous = self.loyalty_points or 0
        if debit > previous:
            raise InsufficientPoints(requested=debit, available=previous)

        self.loyalty_points = previous - debit + credit
        self.raise_(
            LoyaltyPointsAdjusted(
                user_id=str(self.id),
                debited=debit,
                credited=credit,
                previous_balance=previous,
                new_balance=self.loyalty_points,
                reason=reason,
                adjusted_at=datetime.now(UTC),
            )
        )


@storefront.repository(part_of=User)
class UserRepository:
    def find_by_email(self, email: str) -> User | None:
        return self._dao.query.filter(email=(email or "").strip().lower()).all().first
