"""Product aggregate root with Variant entities.

Catalogue maintenance is a collaborator of checkout: the only behaviour the
storefront needs beyond creation is the conditional stock movement used by
the Inventory Ledger. Prices and inventory are integers in minor currency
units.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Integer, String, Text

from storefront.catalogue.events import ProductCreated, StockReleased, StockReserved
from storefront.domain import storefront
from storefront.errors import InsufficientStock, VariantNotFound

MIN_VARIANTS = 2


@storefront.entity(part_of="Product")
class Variant:
    """A purchasable SKU-level configuration with its own price and stock."""

    sku = String(required=True, max_length=50)
    name = String(required=True, max_length=255)
    price = Integer(required=True, min_value=0)
    inventory = Integer(default=0, min_value=0)
    attributes = Text()


@storefront.aggregate
class Product:
    name = String(required=True, max_length=255)
    category = String(required=True, max_length=100)
    brand = String(required=True, max_length=100)
    base_price = Integer(required=True, min_value=0)
    variants = HasMany(Variant)
    sold_count = Integer(default=0, min_value=0)
    created_at = DateTime()
    updated_at = DateTime()

    # -------------------------------------------------------------------
    # Factory
    # -------------------------------------------------------------------
    @classmethod
    def create(cls, name, category, brand, base_price, variants_data):
        """Create a product with at least two variants and distinct SKUs.

        Args:
            variants_data: List of dicts with sku, name, price, inventory
                           and optional attributes (dict).
        """
        if len(variants_data) < MIN_VARIANTS:
            raise ValidationError({"variants": [f"A product needs at least {MIN_VARIANTS} variants"]})

        skus = [v["sku"] for v in variants_data]
        if len(set(skus)) != len(skus):
            raise ValidationError({"variants": ["Variant SKUs must be unique"]})

        now = datetime.now(UTC)
        product = cls(
            name=name,
            category=category,
            brand=brand,
            base_price=base_price,
            variants=[
                Variant(
                    sku=v["sku"],
                    name=v["name"],
                    price=v["price"],
                    inventory=v.get("inventory", 0),
                    attributes=json.dumps(v.get("attributes") or {}),
                )
                for v in variants_data
            ],
            sold_count=0,
            created_at=now,
            updated_at=now,
        )
        product.raise_(
            ProductCreated(
                product_id=str(product.id),
                name=name,
                category=category,
                brand=brand,
                variant_count=len(variants_data),
                created_at=now,
            )
        )
        return product

    # -------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------
    def find_variant(self, variant_id):
        return next((v for v in self.variants if str(v.id) == str(variant_id)), None)

    def get_variant(self, variant_id):
        variant = self.find_variant(variant_id)
        if variant is None:
            raise VariantNotFound(self.id, variant_id, product_name=self.name)
        return variant

    # -------------------------------------------------------------------
    # Stock movements (Inventory Ledger only)
    # -------------------------------------------------------------------
    def take_stock(self, variant_id, quantity):
        """Decrement a variant's inventory if enough units remain."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        variant = self.get_variant(variant_id)
        available = variant.inventory
        if available < quantity:
            raise InsufficientStock(
                self.id,
                variant_id,
                requested=quantity,
                available=available,
                label=f"{self.name} - {variant.name}",
            )

        now = datetime.now(UTC)
        variant.inventory = available - quantity
        self.sold_count = (self.sold_count or 0) + quantity
        self.updated_at = now

        self.raise_(
            StockReserved(
                product_id=str(self.id),
                variant_id=str(variant.id),
                sku=variant.sku,
                quantity=quantity,
                previous_inventory=available,
                new_inventory=variant.inventory,
                reserved_at=now,
            )
        )

    def restore_stock(self, variant_id, quantity):
        """Put units back after a reservation is rolled back."""
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        variant = self.get_variant(variant_id)
        previous = variant.inventory
        now = datetime.now(UTC)
        variant.inventory = previous + quantity
        self.sold_count = max((self.sold_count or 0) - quantity, 0)
        self.updated_at = now

        self.raise_(
            StockReleased(
                product_id=str(self.id),
                variant_id=str(variant.id),
                sku=variant.sku,
                quantity=quantity,
                previous_inventory=previous,
                new_inventory=variant.inventory,
                released_at=now,
            )
        )
