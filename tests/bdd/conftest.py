"""Shared BDD fixtures and step definitions for checkout scenarios."""

import pytest
from protean import current_domain
from pytest_bdd import given, parsers, then

from storefront.catalogue.product import Product
from storefront.discount.discount import DiscountCode


@pytest.fixture()
def context():
    """Mutable scenario state: the product under test, results and errors."""
    return {"product": None, "results": [], "errors": []}


@given(
    parsers.cfparse('a product "{name}" with a variant priced {price:d} and {stock:d} in stock'),
)
def product_in_stock(context, make_product, name, price, stock):
    context["product"] = make_product(
        name=name,
        variants=[(f"{name[:3].upper()}-1", "Default", price, stock), (f"{name[:3].upper()}-2", "Other", price, 0)],
    )


@given(parsers.cfparse('a fixed discount "{code}" worth {value:d} with {limit:d} uses and {used:d} used'))
def fixed_discount(make_discount, code, value, limit, used):
    make_discount(code=code, value_type="fixed", value=value, usage_limit=limit, used_count=used)


@then(parsers.cfparse("{count:d} units remain in stock"))
def units_remain(context, count):
    product = current_domain.repository_for(Product).get(context["product"].id)
    variant_id = str(context["product"].variants[0].id)
    assert next(v.inventory for v in product.variants if str(v.id) == variant_id) == count


@then(parsers.cfparse('the discount "{code}" has been used {count:d} times'))
def discount_used(code, count):
    discount = current_domain.repository_for(DiscountCode).find_by_code(code)
    assert discount.used_count == count
