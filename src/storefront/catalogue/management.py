"""Product creation: command and handler."""

import json

from protean import handle
from protean.fields import Integer, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.domain import storefront


@storefront.command(part_of="Product")
class CreateProduct:
    name = String(required=True, max_length=255)
    category = String(required=True, max_length=100)
    brand = String(required=True, max_length=100)
    base_price = Integer(required=True, min_value=0)
    variants = Text(required=True)  # JSON: list of {sku, name, price, inventory, attributes}


@storefront.command_handler(part_of=Product)
class CreateProductHandler:
    @handle(CreateProduct)
    def create_product(self, command):
        variants_data = json.loads(command.variants) if isinstance(command.variants, str) else command.variants

        product = Product.create(
            name=command.name,
            category=command.category,
            brand=command.brand,
            base_price=command.base_price,
            variants_data=variants_data,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)
