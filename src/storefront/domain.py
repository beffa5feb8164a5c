"""Storefront bounded context: catalogue stock, carts, discounts, loyalty and orders.

Everything a single checkout touches lives in this one domain so that the
Order Assembler can coordinate inventory, discount usage, loyalty balances,
carts and orders against the same set of repositories.
"""

import structlog
from protean.domain import Domain

from storefront.utils.logging import configure_logging

configure_logging()

storefront = Domain(name="storefront")

logger = structlog.get_logger(__name__)
