"""Pricing Engine: the monetary breakdown of one order.

Pure computation over integers in minor currency units. Every rounding step
goes through ``Decimal`` with ROUND_HALF_UP so that results are reproducible
bit for bit; nothing here touches a float.

``preview`` is called before anything is committed and ``quote`` is the
breakdown the Order Assembler persists. Both delegate to ``price`` so they
cannot diverge for identical inputs.
"""

from collections.abc import Iterable
from dataclasses import asdict, dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal

TAX_RATE = Decimal("0.10")
FREE_SHIPPING_THRESHOLD = 500_000
FLAT_SHIPPING_FEE = 30_000
POINTS_EARN_RATE = Decimal("0.10")

PERCENT = "percent"
FIXED = "fixed"


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def floor(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_FLOOR))


@dataclass(frozen=True)
class PricedLine:
    """A validated line item carrying the live unit price of its variant."""

    product_id: str
    variant_id: str
    unit_price: int
    quantity: int
    product_name: str = ""
    variant_name: str = ""
    sku: str = ""

    @property
    def subtotal(self) -> int:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class DiscountTerms:
    """The parts of a discount code that influence price."""

    code: str
    value_type: str
    value: int


@dataclass(frozen=True)
class PriceBreakdown:
    subtotal: int
    discount_code: str | None
    discount_amount: int
    points_used: int
    points_discount: int
    tax_amount: int
    shipping_fee: int
    total_amount: int
    points_earned: int
    discount_valid: bool = False
    available_points: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


def discount_amount_for(subtotal: int, discount: DiscountTerms | None) -> int:
    if discount is None:
        return 0
    if discount.value_type == PERCENT:
        return round_half_up(Decimal(subtotal) * Decimal(discount.value) / Decimal(100))
    if discount.value_type == FIXED:
        return min(discount.value, subtotal)
    raise ValueError(f"Unknown discount type: {discount.value_type}")


def shipping_fee_for(subtotal: int) -> int:
    return 0 if subtotal > FREE_SHIPPING_THRESHOLD else FLAT_SHIPPING_FEE


def price(
    lines: Iterable[PricedLine],
    discount: DiscountTerms | None = None,
    points_requested: int = 0,
    available_points: int = 0,
) -> PriceBreakdown:
    """Compute subtotal, discount, points, tax, shipping, total and points earned.

    ``discount`` must already be known to be valid; pass ``None`` for an
    absent or invalid code. Points redeem 1:1 against the order and are
    capped by both the available balance and what is left of the subtotal
    after the discount. The second cap is stricter than
    ``min(requested, available)``: a redemption larger than the discounted
    subtotal is trimmed to it, so the taxable base and total never go
    negative.
    """
    subtotal = sum(line.subtotal for line in lines)
    discount_amount = discount_amount_for(subtotal, discount)

    points_discount = max(0, min(points_requested, available_points, subtotal - discount_amount))

    taxable_base = max(0, subtotal - discount_amount - points_discount)
    tax_amount = round_half_up(Decimal(taxable_base) * TAX_RATE)
    shipping_fee = shipping_fee_for(subtotal)

    total_amount = subtotal - discount_amount - points_discount + tax_amount + shipping_fee
    points_earned = floor(Decimal(total_amount) * POINTS_EARN_RATE)

    return PriceBreakdown(
        subtotal=subtotal,
        discount_code=discount.code if discount else None,
        discount_amount=discount_amount,
        points_used=points_discount,
        points_discount=points_discount,
        tax_amount=tax_amount,
        shipping_fee=shipping_fee,
        total_amount=total_amount,
        points_earned=points_earned,
        discount_valid=discount is not None,
        available_points=available_points,
    )


def preview(lines, discount=None, points_requested=0, available_points=0) -> PriceBreakdown:
    """Side-effect-free breakdown shown to the shopper before checkout."""
    return price(list(lines), discount, points_requested, available_points)


def quote(lines, discount=None, points_requested=0, available_points=0) -> PriceBreakdown:
    """Breakdown the Order Assembler freezes before its commit phase starts."""
    return price(list(lines), discount, points_requested, available_points)
