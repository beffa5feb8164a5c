"""Inventory Ledger: the only writer of variant stock counts.

A reservation is one read-modify-write of the owning Product held under that
product's lock: reload, compare live stock with the requested quantity,
decrement, bump ``sold_count``, persist. Two reservations for the same
product never interleave; reservations for different products never wait
on each other.
"""

from dataclasses import dataclass

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.catalogue.product import Product
from storefront.errors import ProductNotFound
from storefront.utils.locks import product_locks

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class Reservation:
    """Proof that ``quantity`` units were taken; the handle for releasing them."""

    product_id: str
    variant_id: str
    quantity: int


def load_product(product_id) -> Product:
    try:
        return current_domain.repository_for(Product).get(product_id)
    except ObjectNotFoundError as exc:
        raise ProductNotFound(product_id) from exc


def available(product_id, variant_id) -> int:
    """Live stock of one variant. Read-only; no lock is taken."""
    return load_product(product_id).get_variant(variant_id).inventory


def reserve(product_id, variant_id, quantity: int) -> Reservation:
    """Take ``quantity`` units of a variant or raise ``InsufficientStock``."""
    with product_locks.hold(product_id):
        product = load_product(product_id)
        product.take_stock(variant_id, quantity)
        current_domain.repository_for(Product).add(product)

    logger.info(
        "inventory_reserved",
        product_id=str(product_id),
        variant_id=str(variant_id),
        quantity=quantity,
    )
    return Reservation(product_id=str(product_id), variant_id=str(variant_id), quantity=quantity)


def release(reservation: Reservation) -> None:
    """Return reserved units to stock."""
    with product_locks.hold(reservation.product_id):
        product = load_product(reservation.product_id)
        product.restore_stock(reservation.variant_id, reservation.quantity)
        current_domain.repository_for(Product).add(product)

    logger.info(
        "inventory_released",
        product_id=reservation.product_id,
        variant_id=reservation.variant_id,
        quantity=reservation.quantity,
    )


def reserve_all(lines) -> list[Reservation]:
    """Reserve every line or none of them.

    ``lines`` are objects with ``product_id``, ``variant_id`` and
    ``quantity``. If any line fails, lines already reserved are released
    in reverse order before the error propagates. A release that fails is
    logged and the remaining ones still run; the original error is what
    the caller sees.
    """
    taken: list[Reservation] = []
    try:
        for line in lines:
            taken.append(reserve(line.product_id, line.variant_id, line.quantity))
    except Exception:
        for reservation in reversed(taken):
            try:
                release(reservation)
            except Exception:
                logger.exception(
                    "inventory_release_failed",
                    product_id=reservation.product_id,
                    variant_id=reservation.variant_id,
                    quantity=reservation.quantity,
                )
        raise
    return taken
