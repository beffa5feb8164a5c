"""Identity Resolver: decide which account a checkout acts for.

Resolution is a pure read that returns a tagged result:

* ``ExistingUser``: the authenticated caller, or the account already
  registered under the guest email.
* ``NewGuestUser``: nobody owns the email yet; the account is described but
  not stored. ``ensure_account`` stores it during commit.

A caller with neither a token nor enough contact details is rejected with
``MissingIdentity``.
"""

import secrets
import time
from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.customer.tokens import generate_credential
from storefront.customer.user import Address, User, normalize_email
from storefront.errors import AuthenticationError, MissingIdentity
from storefront.utils.locks import email_locks

logger = structlog.get_logger(__name__)

GUEST_EMAIL_DOMAIN = "temp.local"


@dataclass(frozen=True)
class ExistingUser:
    user: User
    authenticated: bool = False

    @property
    def user_id(self) -> str:
        return str(self.user.id)


@dataclass(frozen=True)
class NewGuestUser:
    email: str
    full_name: str
    phone: str | None
    address: dict | None
    credential: str


def _placeholder_email() -> str:
    return f"guest_{int(time.time() * 1000)}_{secrets.token_hex(3)}@{GUEST_EMAIL_DOMAIN}"


def _address_fields(shipping_address: dict | None) -> dict | None:
    if not shipping_address:
        return None
    fields = ("label", "full_name", "phone", "street", "city", "province", "country")
    return {k: shipping_address[k] for k in fields if shipping_address.get(k) is not None}


def resolve(authenticated_user_id=None, guest_info=None, shipping_address=None):
    """Return ``ExistingUser`` or ``NewGuestUser`` for a checkout request.

    ``guest_info`` and ``shipping_address`` are plain dicts. With only a
    shipping address, a guest is described under a generated placeholder
    email using the address' recipient name and phone.
    """
    repo = current_domain.repository_for(User)

    if authenticated_user_id:
        try:
            return ExistingUser(user=repo.get(authenticated_user_id), authenticated=True)
        except ObjectNotFoundError as exc:
            raise AuthenticationError("User not found") from exc

    guest_info = guest_info or {}
    shipping_address = shipping_address or {}

    if guest_info.get("email"):
        email = normalize_email(guest_info["email"])
        existing = repo.find_by_email(email)
        if existing is not None:
            return ExistingUser(user=existing)
    elif shipping_address:
        email = _placeholder_email()
    else:
        raise MissingIdentity()

    full_name = guest_info.get("full_name") or shipping_address.get("full_name")
    if not full_name:
        raise MissingIdentity()

    resolution = NewGuestUser(
        email=email,
        full_name=full_name,
        phone=guest_info.get("phone") or shipping_address.get("phone"),
        address=_address_fields(shipping_address),
        credential=generate_credential(),
    )
    _check_guest_details(resolution)
    return resolution


def _check_guest_details(resolution: NewGuestUser) -> None:
    """Build, without storing, the account and address a guest would get.

    Raises ``ValidationError`` for details the User aggregate would refuse
    at commit, such as an over-long phone number.
    """
    User(email=resolution.email, full_name=resolution.full_name, phone=resolution.phone)
    if resolution.address:
        Address(**resolution.address)


def ensure_account(resolution) -> tuple[User, bool]:
    """Return the acting user, storing a new guest account if needed.

    The second element is True only when this call created the account.
    A concurrent checkout may have registered the same email since
    ``resolve`` ran; that account is adopted instead of creating a second one.
    """
    if isinstance(resolution, ExistingUser):
        return resolution.user, False

    repo = current_domain.repository_for(User)
    with email_locks.hold(resolution.email):
        existing = repo.find_by_email(resolution.email)
        if existing is not None:
            logger.info("guest_account_adopted", user_id=str(existing.id))
            return existing, False

        user = User.register_guest(
            email=resolution.email,
            full_name=resolution.full_name,
            credential=resolution.credential,
            phone=resolution.phone,
            address=resolution.address,
        )
        repo.add(user)

    logger.info("guest_account_created", user_id=str(user.id))
    return user, True


def discard_account(user: User) -> None:
    """Remove a guest account created by a checkout that did not complete."""
    current_domain.repository_for(User)._dao.delete(user)
    logger.info("guest_account_discarded", user_id=str(user.id))
