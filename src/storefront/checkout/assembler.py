"""Order Assembler: one checkout as a small state machine.

    Validating → Pricing → Committing → Completed
         ↘           ↘           ↘
        Rejected    Rejected    PartiallyFailed (compensated, CheckoutFailed)

Validation and pricing only read. Everything that writes happens in the
commit phase, step by step through the ledgers, with a compensator recorded
for every step so that a failure part way leaves no ledger mutated. The
price breakdown is computed once, before the first write, and that exact
breakdown is stored on the order.

A ledger that refuses a step during commit (the last unit was taken, the
code ran out of uses since pricing) is a business rejection: the completed
steps are undone and the ledger's own error reaches the caller. Any other
failure is wrapped in ``CheckoutFailed``.
"""

from dataclasses import dataclass, field
from enum import Enum
from uuid import uuid4

import structlog
from protean.utils.globals import current_domain

from storefront.cart.store import CartStore
from storefront.checkout.saga import CommitSaga
from storefront.customer import resolver
from storefront.customer.resolver import ExistingUser, NewGuestUser
from storefront.customer.tokens import issue_token
from storefront.customer.user import User
from storefront.discount import ledger as discount_ledger
from storefront.errors import (
    CheckoutFailed,
    ConflictError,
    EmptyCart,
    InsufficientPoints,
    InsufficientStock,
    MissingShippingAddress,
)
from storefront.inventory import ledger as inventory_ledger
from storefront.loyalty import ledger as loyalty_ledger
from storefront.notifications import get_sink
from storefront.order.order import COD, Order, ShippingAddress, check_payment_method, generate_order_number
from storefront.pricing import engine
from storefront.pricing.engine import PricedLine, PriceBreakdown
from storefront.utils.logging import add_context, clear_context

logger = structlog.get_logger(__name__)


class CheckoutState(Enum):
    VALIDATING = "validating"
    PRICING = "pricing"
    COMMITTING = "committing"
    COMPLETED = "completed"
    REJECTED = "rejected"
    PARTIALLY_FAILED = "partially_failed"


@dataclass
class CheckoutRequest:
    """Checkout input after schema validation.

    ``cart_items`` holds dicts with product_id, variant_id and quantity;
    addresses and guest details are plain dicts.
    """

    cart_items: list[dict] = field(default_factory=list)
    shipping_address_id: str | None = None
    shipping_address: dict | None = None
    payment_method: str = COD
    discount_code: str | None = None
    points_to_use: int = 0
    guest_info: dict | None = None
    session_id: str | None = None


@dataclass(frozen=True)
class CheckoutResult:
    order: Order
    user_id: str
    token: str | None = None


@dataclass
class ValidatedCheckout:
    identity: ExistingUser | NewGuestUser
    lines: list[PricedLine]
    shipping_address: dict

    @property
    def authenticated(self) -> bool:
        return isinstance(self.identity, ExistingUser) and self.identity.authenticated


def _merge_duplicate_lines(cart_items) -> list[dict]:
    """Combine repeated (product, variant) pairs so stock is checked on the total."""
    merged: dict[tuple[str, str], dict] = {}
    for item in cart_items:
        key = (str(item["product_id"]), str(item["variant_id"]))
        if key in merged:
            merged[key]["quantity"] += item["quantity"]
        else:
            merged[key] = {"product_id": key[0], "variant_id": key[1], "quantity": item["quantity"]}
    return list(merged.values())


def price_lines(cart_items, check_stock=True) -> list[PricedLine]:
    """Read each line's live product and variant and attach the current price."""
    lines = []
    for item in _merge_duplicate_lines(cart_items):
        product = inventory_ledger.load_product(item["product_id"])
        variant = product.get_variant(item["variant_id"])
        if check_stock and variant.inventory < item["quantity"]:
            raise InsufficientStock(
                product.id,
                variant.id,
                requested=item["quantity"],
                available=variant.inventory,
                label=f"{product.name} - {variant.name}",
            )
        lines.append(
            PricedLine(
                product_id=str(product.id),
                variant_id=str(variant.id),
                unit_price=variant.price,
                quantity=item["quantity"],
                product_name=product.name,
                variant_name=variant.name,
                sku=variant.sku,
            )
        )
    return lines


class CheckoutService:
    """Runs checkouts and previews against the current domain."""

    def __init__(self, cart_store: CartStore | None = None) -> None:
        self.cart_store = cart_store or CartStore()

    # -------------------------------------------------------------------
    # Entry points
    # -------------------------------------------------------------------
    def checkout(self, request: CheckoutRequest, authenticated_user_id=None) -> CheckoutResult:
        checkout_id = uuid4().hex[:12]
        add_context(checkout_id=checkout_id)
        state = CheckoutState.VALIDATING
        try:
            validated = self.validate(request, authenticated_user_id)

            state = CheckoutState.PRICING
            breakdown = self.price(validated, request)

            state = CheckoutState.COMMITTING
            order, user = self.commit(checkout_id, validated, breakdown, request)

            state = CheckoutState.COMPLETED
            self._notify(order, user)

            token = None
            if not validated.authenticated and user.is_guest_account:
                token = issue_token(user.id, role=user.role)

            logger.info(
                "checkout_completed",
                order_id=str(order.id),
                order_number=order.order_number,
                user_id=str(user.id),
                total_amount=order.total_amount,
            )
            return CheckoutResult(order=order, user_id=str(user.id), token=token)
        except CheckoutFailed:
            logger.error("checkout_partially_failed", state=CheckoutState.PARTIALLY_FAILED.value)
            raise
        except Exception as exc:
            logger.info(
                "checkout_rejected",
                state=CheckoutState.REJECTED.value,
                rejected_while=state.value,
                reason=str(exc),
            )
            raise
        finally:
            clear_context("checkout_id")

    def preview(self, cart_items, discount_code=None, points_to_use=0, authenticated_user_id=None) -> PriceBreakdown:
        """Price a cart without reserving or writing anything.

        Unlike checkout, an unusable discount code prices at zero and
        requested points are capped at the available balance instead of
        being rejected.
        """
        if not cart_items:
            raise EmptyCart()

        lines = price_lines(cart_items, check_stock=False)

        terms = None
        if discount_code:
            discount = discount_ledger.find(discount_code)
            if discount is not None and discount.is_valid():
                terms = discount.terms()

        available = loyalty_ledger.balance(authenticated_user_id) if authenticated_user_id else 0
        return engine.preview(lines, terms, points_to_use or 0, available)

    # -------------------------------------------------------------------
    # Validating
    # -------------------------------------------------------------------
    def validate(self, request: CheckoutRequest, authenticated_user_id=None) -> ValidatedCheckout:
        identity = resolver.resolve(
            authenticated_user_id=authenticated_user_id,
            guest_info=request.guest_info,
            shipping_address=request.shipping_address,
        )

        if not request.cart_items:
            raise EmptyCart()

        check_payment_method(request.payment_method)
        shipping_address = self._resolve_shipping_address(identity, request)
        lines = price_lines(request.cart_items, check_stock=True)
        return ValidatedCheckout(identity=identity, lines=lines, shipping_address=shipping_address)

    def _resolve_shipping_address(self, identity, request) -> dict:
        if request.shipping_address_id and isinstance(identity, ExistingUser) and identity.authenticated:
            address = identity.user.find_address(request.shipping_address_id)
            if address is None:
                raise MissingShippingAddress("Shipping address not found")
            return address.snapshot()
        if request.shipping_address:
            address = {k: v for k, v in request.shipping_address.items() if v is not None}
            ShippingAddress(**address)
            return address
        raise MissingShippingAddress()

    # -------------------------------------------------------------------
    # Pricing
    # -------------------------------------------------------------------
    def price(self, validated: ValidatedCheckout, request: CheckoutRequest) -> PriceBreakdown:
        terms = None
        if request.discount_code:
            terms = discount_ledger.check(request.discount_code).terms()

        requested = request.points_to_use or 0
        available = 0
        if validated.authenticated:
            available = validated.identity.user.loyalty_points or 0
        if requested > available:
            raise InsufficientPoints(requested=requested, available=available)

        return engine.quote(validated.lines, terms, requested, available)

    # -------------------------------------------------------------------
    # Committing
    # -------------------------------------------------------------------
    def commit(self, checkout_id, validated: ValidatedCheckout, breakdown: PriceBreakdown, request: CheckoutRequest):
        saga = CommitSaga(checkout_id)
        try:
            user, _ = saga.step(
                "register_account",
                lambda: resolver.ensure_account(validated.identity),
                compensate=_discard_if_created,
            )

            order = saga.step(
                "place_order",
                lambda: Order.place(
                    order_number=generate_order_number(),
                    user_id=user.id,
                    lines=[_line_snapshot(line) for line in validated.lines],
                    shipping_address=validated.shipping_address,
                    payment_method=request.payment_method,
                    breakdown=breakdown,
                ),
            )
            add_context(order_number=order.order_number)

            saga.step(
                "reserve_inventory",
                lambda: inventory_ledger.reserve_all(validated.lines),
                compensate=_release_all,
            )

            if breakdown.discount_code:
                saga.step(
                    "redeem_discount",
                    lambda: discount_ledger.redeem(breakdown.discount_code, user.id, order.id),
                    compensate=discount_ledger.revoke,
                )

            if breakdown.points_used or breakdown.points_earned:
                saga.step(
                    "settle_loyalty",
                    lambda: loyalty_ledger.settle(
                        user.id,
                        redeemed=breakdown.points_used,
                        earned=breakdown.points_earned,
                        reference=order.order_number,
                    ),
                    compensate=lambda settlement: settlement.reverse(),
                )

            cart_owner = {"user_id": str(user.id)} if validated.authenticated else {"session_id": request.session_id}
            if cart_owner.get("user_id") or cart_owner.get("session_id"):
                saga.step(
                    "clear_cart",
                    lambda: self.cart_store.clear(**cart_owner),
                    compensate=self.cart_store.restore,
                )

            saga.step("persist_order", lambda: current_domain.repository_for(Order).add(order))
        except ConflictError:
            run, failed = saga.rollback()
            logger.info(
                "checkout_commit_refused",
                step=saga.current_step,
                compensations_run=run,
                compensations_failed=failed,
            )
            raise
        except Exception as exc:
            run, failed = saga.rollback()
            logger.exception(
                "checkout_commit_failed",
                step=saga.current_step,
                compensations_run=run,
                compensations_failed=failed,
            )
            raise CheckoutFailed(
                checkout_id,
                saga.current_step,
                exc,
                compensations_run=run,
                compensations_failed=failed,
            ) from exc
        finally:
            clear_context("order_number")

        return order, user

    # -------------------------------------------------------------------
    # Completed
    # -------------------------------------------------------------------
    def _notify(self, order: Order, user: User) -> None:
        try:
            get_sink().emit(
                "order_created",
                {
                    "order_id": str(order.id),
                    "order_number": order.order_number,
                    "user_id": str(user.id),
                    "email": user.email,
                    "total_amount": order.total_amount,
                },
            )
        except Exception as exc:
            logger.warning("order_notification_failed", order_id=str(order.id), error=str(exc))


def _line_snapshot(line: PricedLine) -> dict:
    return {
        "product_id": line.product_id,
        "variant_id": line.variant_id,
        "product_name": line.product_name,
        "variant_name": line.variant_name,
        "sku": line.sku,
        "price": line.unit_price,
        "quantity": line.quantity,
    }


def _discard_if_created(result) -> None:
    user, created = result
    if created:
        resolver.discard_account(user)


def _release_all(reservations) -> None:
    for reservation in reversed(reservations):
        inventory_ledger.release(reservation)
