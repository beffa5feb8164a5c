import threading

import pytest
from protean import current_domain
from storefront.catalogue.product import Product
from storefront.domain import storefront
from storefront.errors import InsufficientStock, ProductNotFound, VariantNotFound
from storefront.inventory import ledger
from storefront.pricing.engine import PricedLine


def _stock(product_id, variant_id):
    return ledger.available(product_id, variant_id)


def _sold(product_id):
    return current_domain.repository_for(Product).get(product_id).sold_count


class TestReserve:
    def test_reserve_persists_decrement(self, make_product):
        product = make_product()
        variant = product.variants[0]

        reservation = ledger.reserve(product.id, variant.id, 4)

        assert reservation.quantity == 4
        assert _stock(product.id, variant.id) == 6
        assert _sold(product.id) == 4

    def test_reserve_more_than_available(self, make_product):
        product = make_product()
        variant = product.variants[0]

        with pytest.raises(InsufficientStock):
            ledger.reserve(product.id, variant.id, 11)

        assert _stock(product.id, variant.id) == 10
        assert _sold(product.id) == 0

    def test_release_returns_units(self, make_product):
        product = make_product()
        variant = product.variants[1]
        reservation = ledger.reserve(product.id, variant.id, 3)

        ledger.release(reservation)

        assert _stock(product.id, variant.id) == 10
        assert _sold(product.id) == 0

    def test_unknown_product(self):
        with pytest.raises(ProductNotFound):
            ledger.reserve("missing", "missing", 1)

    def test_unknown_variant(self, make_product):
        product = make_product()

        with pytest.raises(VariantNotFound):
            ledger.reserve(product.id, "missing", 1)


class TestReserveAll:
    def test_all_lines_reserved(self, make_product):
        shirt = make_product()
        jeans = make_product(name="Quan jean", variants=[("J-29", "29", 450_000, 2), ("J-30", "30", 450_000, 2)])
        lines = [
            PricedLine(str(shirt.id), str(shirt.variants[0].id), 200_000, 1),
            PricedLine(str(jeans.id), str(jeans.variants[1].id), 450_000, 2),
        ]

        reservations = ledger.reserve_all(lines)

        assert len(reservations) == 2
        assert _stock(jeans.id, jeans.variants[1].id) == 0

    def test_failure_releases_earlier_lines(self, make_product):
        shirt = make_product()
        jeans = make_product(name="Quan jean", variants=[("J-29", "29", 450_000, 2), ("J-30", "30", 450_000, 1)])
        lines = [
            PricedLine(str(shirt.id), str(shirt.variants[0].id), 200_000, 3),
            PricedLine(str(jeans.id), str(jeans.variants[1].id), 450_000, 2),
        ]

        with pytest.raises(InsufficientStock):
            ledger.reserve_all(lines)

        assert _stock(shirt.id, shirt.variants[0].id) == 10
        assert _sold(shirt.id) == 0
        assert _stock(jeans.id, jeans.variants[1].id) == 1

    def test_failed_release_does_not_stop_unwind(self, make_product, monkeypatch):
        shirt = make_product()
        jeans = make_product(name="Quan jean", variants=[("J-29", "29", 450_000, 2), ("J-30", "30", 450_000, 1)])
        lines = [
            PricedLine(str(shirt.id), str(shirt.variants[0].id), 200_000, 3),
            PricedLine(str(shirt.id), str(shirt.variants[1].id), 200_000, 2),
            PricedLine(str(jeans.id), str(jeans.variants[1].id), 450_000, 2),
        ]
        real_release = ledger.release
        attempted = []

        def flaky_release(reservation):
            attempted.append(reservation.variant_id)
            if reservation.variant_id == str(shirt.variants[1].id):
                raise RuntimeError("store unavailable")
            real_release(reservation)

        monkeypatch.setattr(ledger, "release", flaky_release)

        with pytest.raises(InsufficientStock):
            ledger.reserve_all(lines)

        assert attempted == [str(shirt.variants[1].id), str(shirt.variants[0].id)]
        assert _stock(shirt.id, shirt.variants[0].id) == 10
        assert _stock(shirt.id, shirt.variants[1].id) == 8


@pytest.mark.slow
class TestConcurrentReservations:
    def test_stock_never_goes_negative(self, make_product):
        product = make_product(variants=[("HOT-1", "Hot", 100_000, 5), ("HOT-2", "Other", 100_000, 5)])
        variant_id = product.variants[0].id
        outcomes = []
        start = threading.Barrier(12)

        def worker():
            with storefront.domain_context():
                start.wait()
                try:
                    ledger.reserve(product.id, variant_id, 1)
                    outcomes.append("ok")
                except InsufficientStock:
                    outcomes.append("refused")

        threads = [threading.Thread(target=worker) for _ in range(12)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert outcomes.count("ok") == 5
        assert outcomes.count("refused") == 7
        assert _stock(product.id, variant_id) == 0
        assert _sold(product.id) == 5
