import os
from pathlib import Path

import pytest
from protean.integrations.pytest import DomainFixture


def pytest_addoption(parser):
    parser.addoption(
        "--env",
        action="store",
        default="test",
        help="Config environment to run tests on",
    )


def pytest_sessionstart(session):
    """Select the config overlay before the domain module is first imported."""
    os.environ["PROTEAN_ENV"] = session.config.option.env


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their directory location."""
    for item in items:
        test_path = str(Path(item.fspath))

        if "/domain/" in test_path:
            item.add_marker(pytest.mark.domain)
        elif "/application/" in test_path:
            item.add_marker(pytest.mark.application)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
            if not any(m.name == "fast" for m in item.iter_markers()):
                item.add_marker(pytest.mark.slow)
        elif "/bdd/" in test_path:
            item.add_marker(pytest.mark.bdd)


@pytest.fixture(scope="session")
def storefront_bed():
    from storefront.domain import storefront

    bed = DomainFixture(storefront)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(storefront_bed):
    with storefront_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def run_around_tests(_ctx):
    """Cleanup stores and the notification sink after every test."""
    from storefront.notifications import reset_sink

    reset_sink()

    yield

    from protean import current_domain

    for _, provider in current_domain.providers.items():
        provider._data_reset()

    current_domain.event_store.store._data_reset()
    reset_sink()


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    """Store a product; ``variants`` is a list of (sku, name, price, inventory)."""
    from protean import current_domain
    from storefront.catalogue.product import Product

    def _make(name="Ao thun basic", variants=None, category="Ao", brand="Local", base_price=None):
        variants = variants or [("TEE-S", "Size S", 200_000, 10), ("TEE-M", "Size M", 200_000, 10)]
        product = Product.create(
            name=name,
            category=category,
            brand=brand,
            base_price=base_price if base_price is not None else variants[0][2],
            variants_data=[
                {"sku": sku, "name": vname, "price": price, "inventory": inventory}
                for sku, vname, price, inventory in variants
            ],
        )
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def make_user():
    from protean import current_domain
    from storefront.customer.user import User

    def _make(email="an@example.com", full_name="Nguyen Van An", loyalty_points=0, role="customer", password=None):
        user = User.register(email=email, full_name=full_name, password=password, role=role)
        user.loyalty_points = loyalty_points
        current_domain.repository_for(User).add(user)
        return user

    return _make


@pytest.fixture()
def make_discount():
    from protean import current_domain
    from storefront.discount.discount import DiscountCode

    def _make(code="SALE1", value_type="percent", value=10, usage_limit=5, used_count=0, is_active=True):
        discount = DiscountCode.create(code=code, value_type=value_type, value=value, usage_limit=usage_limit)
        discount.used_count = used_count
        discount.is_active = is_active
        current_domain.repository_for(DiscountCode).add(discount)
        return discount

    return _make


@pytest.fixture()
def shipping_address():
    return {
        "full_name": "Nguyen Van An",
        "phone": "0901234567",
        "street": "12 Le Loi",
        "city": "District 1",
        "province": "Ho Chi Minh City",
    }
