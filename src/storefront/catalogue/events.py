"""Domain events for the Product aggregate."""

from protean.fields import DateTime, Identifier, Integer, String

from storefront.domain import storefront


@storefront.event(part_of="Product")
class ProductCreated:
    """A product was added to the catalogue with its purchasable variants."""

    __version__ = 1

    product_id = Identifier(required=True)
    name = String(required=True)
    category = String(required=True)
    brand = String(required=True)
    variant_count = Integer(required=True)
    created_at = DateTime(required=True)


@storefront.event(part_of="Product")
class StockReserved:
    """Units of a variant were taken out of inventory for an order."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(required=True)
    quantity = Integer(required=True)
    previous_inventory = Integer(required=True)
    new_inventory = Integer(required=True)
    reserved_at = DateTime(required=True)


@storefront.event(part_of="Product")
class StockReleased:
    """Previously reserved units were put back into inventory."""

    __version__ = 1

    product_id = Identifier(required=True)
    variant_id = Identifier(required=True)
    sku = String(required=True)
    quantity = Integer(required=True)
    previous_inventory = Integer(required=True)
    new_inventory = Integer(required=True)
    released_at = DateTime(required=True)
