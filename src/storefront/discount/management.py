"""Discount administration: issue and toggle codes."""

from protean import handle
from protean.exceptions import ValidationError
from protean.fields import Identifier, Integer, String
from protean.utils.globals import current_domain

from storefront.discount.discount import DiscountCode
from storefront.domain import storefront


@storefront.command(part_of="DiscountCode")
class CreateDiscount:
    code = String(required=True, max_length=20)
    value_type = String(required=True, max_length=10)
    value = Integer(required=True, min_value=0)
    usage_limit = Integer(required=True, min_value=1)
    created_by = Identifier()


@storefront.command(part_of="DiscountCode")
class ToggleDiscount:
    """Flip a code between active and inactive."""

    discount_id = Identifier(required=True)


@storefront.command_handler(part_of=DiscountCode)
class DiscountManagementHandler:
    @handle(CreateDiscount)
    def create_discount(self, command):
        repo = current_domain.repository_for(DiscountCode)
        if repo.find_by_code(command.code) is not None:
            raise ValidationError({"code": ["Discount code already exists"]})

        discount = DiscountCode.create(
            code=command.code,
            value_type=command.value_type,
            value=command.value,
            usage_limit=command.usage_limit,
            created_by=command.created_by,
        )
        repo.add(discount)
        return str(discount.id)

    @handle(ToggleDiscount)
    def toggle_discount(self, command):
        repo = current_domain.repository_for(DiscountCode)
        discount = repo.get(command.discount_id)
        discount.toggle()
        repo.add(discount)
        return discount.is_active
