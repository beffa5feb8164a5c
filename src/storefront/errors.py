"""Error taxonomy for the checkout pipeline.

Every business failure is a Protean exception so that command handlers,
aggregates and the API layer treat them uniformly:

* ``ValidationError`` subclasses: malformed or missing input (HTTP 400).
* ``ConflictError`` subclasses: the request is well formed but the current
  state of a ledger refuses it (HTTP 400, cause surfaced verbatim).
* ``ObjectNotFoundError`` subclasses: a referenced record is absent (HTTP 404).
* ``CheckoutFailed``: a commit step failed after compensation (HTTP 500).
"""

from protean.exceptions import ObjectNotFoundError, ValidationError


class ConflictError(ValidationError):
    """The live state of a ledger cannot satisfy the request."""

    code = "conflict"
    field = "request"

    def __init__(self, detail: str, **context):
        self.detail = detail
        self.context = context
        super().__init__({self.field: [detail]})


class InsufficientStock(ConflictError):
    code = "insufficient_stock"
    field = "quantity"

    def __init__(self, product_id, variant_id, requested, available, label=None):
        name = label or f"{product_id}/{variant_id}"
        super().__init__(
            f"Insufficient inventory for {name}: {available} available, {requested} requested",
            product_id=str(product_id),
            variant_id=str(variant_id),
            requested=requested,
            available=available,
        )


class InsufficientPoints(ConflictError):
    code = "insufficient_points"
    field = "points_to_use"

    def __init__(self, requested, available):
        super().__init__(
            f"Insufficient loyalty points: {available} available, {requested} requested",
            requested=requested,
            available=available,
        )


class DiscountInvalid(ConflictError):
    """Unknown or deactivated discount code."""

    code = "invalid_discount"
    field = "discount_code"

    def __init__(self, discount_code, reason="Invalid or expired discount code"):
        super().__init__(reason, discount_code=discount_code)


class DiscountExpired(DiscountInvalid):
    """The code has reached its usage limit."""

    code = "discount_expired"

    def __init__(self, discount_code, used_count, usage_limit):
        super().__init__(discount_code, reason="Discount code is no longer valid")
        self.context.update(used_count=used_count, usage_limit=usage_limit)


class MissingIdentity(ValidationError):
    def __init__(self):
        super().__init__({"user": ["User authentication or guest info required"]})


class EmptyCart(ValidationError):
    def __init__(self):
        super().__init__({"cart_items": ["Cart is empty"]})


class MissingShippingAddress(ValidationError):
    def __init__(self, reason="Shipping address required"):
        super().__init__({"shipping_address": [reason]})


class ProductNotFound(ObjectNotFoundError):
    def __init__(self, product_id):
        self.product_id = str(product_id)
        super().__init__({"product_id": [f"Product {product_id} not found"]})


class VariantNotFound(ObjectNotFoundError):
    def __init__(self, product_id, variant_id, product_name=None):
        self.product_id = str(product_id)
        self.variant_id = str(variant_id)
        super().__init__(
            {"variant_id": [f"Variant {variant_id} not found for product {product_name or product_id}"]}
        )


class DiscountNotFound(ObjectNotFoundError):
    def __init__(self, reference):
        super().__init__({"discount": [f"Discount {reference} not found"]})


class AddressNotFound(ObjectNotFoundError):
    def __init__(self, address_id):
        self.address_id = str(address_id)
        super().__init__({"address": ["Address not found"]})


class CheckoutFailed(Exception):
    """A commit step failed; completed steps were compensated.

    ``rollback_complete`` is False when at least one compensation raised,
    which leaves state that needs operator attention.
    """

    def __init__(self, checkout_id, step, cause, compensations_run=0, compensations_failed=0):
        self.checkout_id = checkout_id
        self.step = step
        self.cause = cause
        self.compensations_run = compensations_run
        self.compensations_failed = compensations_failed
        super().__init__(f"Checkout {checkout_id} failed during {step}: {cause!r}")

    @property
    def rollback_complete(self) -> bool:
        return self.compensations_failed == 0


class AuthenticationError(Exception):
    """Missing, malformed or expired bearer token."""

    status_code = 401

    def __init__(self, detail="Not authorized to access this route"):
        self.detail = detail
        super().__init__(detail)


class PermissionDenied(AuthenticationError):
    status_code = 403
