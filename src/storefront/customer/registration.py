"""User registration and address book: commands and handler."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from storefront.customer.user import User, normalize_email
from storefront.domain import storefront


@storefront.command(part_of="User")
class RegisterUser:
    email: String(required=True, max_length=254)
    full_name: String(required=True, max_length=255)
    password: String(max_length=128)
    phone: String(max_length=20)
    role: String(max_length=20, default="customer")


@storefront.command(part_of="User")
class AddAddress:
    user_id: Identifier(required=True)
    street: String(required=True, max_length=255)
    city: String(required=True, max_length=100)
    province: String(required=True, max_length=100)
    country: String(max_length=100, default="Vietnam")
    label: String(max_length=50, default="Home")
    full_name: String(max_length=255)
    phone: String(max_length=20)
    is_default: Boolean(default=False)


@storefront.command(part_of="User")
class UpdateAddress:
    user_id: Identifier(required=True)
    address_id: Identifier(required=True)
    street: String(max_length=255)
    city: String(max_length=100)
    province: String(max_length=100)
    country: String(max_length=100)
    label: String(max_length=50)
    full_name: String(max_length=255)
    phone: String(max_length=20)
    is_default: Boolean()


@storefront.command(part_of="User")
class RemoveAddress:
    user_id: Identifier(required=True)
    address_id: Identifier(required=True)


@storefront.command_handler(part_of=User)
class RegistrationHandler:
    @handle(RegisterUser)
    def register_user(self, command):
        email = normalize_email(command.email)
        repo = current_domain.repository_for(User)
        if repo.find_by_email(email) is not None:
            raise ValidationError({"email": ["An account with this email already exists"]})

        user = User.register(
            email=email,
            full_name=command.full_name,
            phone=command.phone,
            password=command.password,
            role=command.role,
        )
        repo.add(user)
        return str(user.id)

    @handle(AddAddress)
    def add_address(self, command):
        repo = current_domain.repository_for(User)
        user = repo.get(command.user_id)
        address = user.add_address(
            street=command.street,
            city=command.city,
            province=command.province,
            country=command.country,
            label=command.label,
            full_name=command.full_name,
            phone=command.phone,
            is_default=command.is_default,
        )
        repo.add(user)
        return str(address.id)

    @handle(UpdateAddress)
    def update_address(self, command):
        repo = current_domain.repository_for(User)
        user = repo.get(command.user_id)

        changes = {}
        for field in ("street", "city", "province", "country", "label", "full_name", "phone", "is_default"):
            value = getattr(command, field, None)
            if value is not None:
                changes[field] = value

        user.update_address(command.address_id, **changes)
        repo.add(user)

    @handle(RemoveAddress)
    def remove_address(self, command):
        repo = current_domain.repository_for(User)
        user = repo.get(command.user_id)
        user.remove_address(command.address_id)
        repo.add(user)
