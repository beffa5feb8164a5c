"""FastAPI routes for the Storefront: checkout, discounts, orders, carts and accounts."""

import json

from fastapi import APIRouter, Depends, Header, Query
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from storefront.api.schemas import (
    AddressBookResponse,
    AddressResponse,
    CartLineResponse,
    CartResponse,
    CheckoutRequestSchema,
    CheckoutResponse,
    CreateDiscountRequest,
    CreateProductRequest,
    DiscountListResponse,
    DiscountResponse,
    DiscountUsageListResponse,
    DiscountUsageResponse,
    IdResponse,
    LoginRequest,
    MergeCartRequest,
    NewAddressRequest,
    OrderListResponse,
    OrderResponse,
    PaginationResponse,
    PreviewRequestSchema,
    PriceBreakdownResponse,
    RegisterRequest,
    SetCartItemRequest,
    StatusResponse,
    TokenResponse,
    UpdateAddressRequest,
    UpdateOrderStatusRequest,
)
from storefront.cart.management import ClearCart, MergeSessionCart, SetCartItem
from storefront.cart.store import CartStore
from storefront.catalogue.management import CreateProduct
from storefront.checkout.assembler import CheckoutRequest, CheckoutService
from storefront.customer.registration import AddAddress, RegisterUser, RemoveAddress, UpdateAddress
from storefront.customer.tokens import decode_token, issue_token
from storefront.customer.user import User, normalize_email
from storefront.discount import ledger as discount_ledger
from storefront.discount.discount import DiscountCode
from storefront.discount.management import CreateDiscount, ToggleDiscount
from storefront.errors import AuthenticationError, DiscountNotFound, PermissionDenied
from storefront.order.history import orders_for
from storefront.order.order import Order
from storefront.order.status import UpdateOrderStatus

bearer_scheme = HTTPBearer(auto_error=False)


# ---------------------------------------------------------------------------
# Authentication dependencies
# ---------------------------------------------------------------------------
async def optional_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> User | None:
    """The signed-in user, or None for anonymous callers.

    A token that is present but invalid is rejected rather than ignored.
    """
    if credentials is None:
        return None
    claims = decode_token(credentials.credentials)
    try:
        return current_domain.repository_for(User).get(claims.get("id") or claims.get("sub"))
    except ObjectNotFoundError as exc:
        raise AuthenticationError("User not found") from exc


async def required_user(user: User | None = Depends(optional_user)) -> User:
    if user is None:
        raise AuthenticationError("Not authorized, no token")
    return user


async def admin_user(user: User = Depends(required_user)) -> User:
    if not user.is_admin:
        raise PermissionDenied("Admin access required")
    return user


def _discount_response(discount: DiscountCode) -> DiscountResponse:
    return DiscountResponse(
        id=str(discount.id),
        code=discount.code,
        value_type=discount.value_type,
        value=discount.value,
        usage_limit=discount.usage_limit,
        used_count=discount.used_count,
        remaining_uses=discount.remaining_uses,
        is_active=discount.is_active,
    )


def _cart_response(cart) -> CartResponse:
    if cart is None:
        return CartResponse()
    return CartResponse(
        cart_id=str(cart.id),
        items=[CartLineResponse(**line) for line in cart.line_items()],
        total_amount=cart.total_amount,
    )


def _address_book_response(user_id) -> AddressBookResponse:
    user = current_domain.repository_for(User).get(user_id)
    return AddressBookResponse(
        addresses=[
            AddressResponse(id=str(address.id), is_default=bool(address.is_default), **address.snapshot())
            for address in user.addresses
        ]
    )


def _load_discount(discount_id) -> DiscountCode:
    try:
        return current_domain.repository_for(DiscountCode).get(discount_id)
    except ObjectNotFoundError as exc:
        raise DiscountNotFound(discount_id) from exc


# ---------------------------------------------------------------------------
# Checkout Router
# ---------------------------------------------------------------------------
checkout_router = APIRouter(prefix="/checkout", tags=["checkout"])


@checkout_router.post("", status_code=201, response_model=CheckoutResponse)
async def checkout(
    body: CheckoutRequestSchema,
    user: User | None = Depends(optional_user),
    x_session_id: str | None = Header(default=None),
) -> CheckoutResponse:
    request = CheckoutRequest(
        cart_items=[item.model_dump() for item in body.cart_items],
        shipping_address_id=body.shipping_address_id,
        shipping_address=body.shipping_address.model_dump(exclude_none=True) if body.shipping_address else None,
        payment_method=body.payment_method or "cod",
        discount_code=body.discount_code,
        points_to_use=body.points_to_use,
        guest_info=body.guest_info.model_dump() if body.guest_info else None,
        session_id=body.session_id or x_session_id,
    )
    result = CheckoutService().checkout(request, authenticated_user_id=user.id if user else None)
    return CheckoutResponse(order=OrderResponse.from_order(result.order), token=result.token)


@checkout_router.post("/preview", response_model=PriceBreakdownResponse)
async def preview_checkout(
    body: PreviewRequestSchema,
    user: User | None = Depends(optional_user),
) -> PriceBreakdownResponse:
    breakdown = CheckoutService().preview(
        [item.model_dump() for item in body.cart_items],
        discount_code=body.discount_code,
        points_to_use=body.points_to_use,
        authenticated_user_id=user.id if user else None,
    )
    return PriceBreakdownResponse(**breakdown.to_dict())


# ---------------------------------------------------------------------------
# Discount Router
# ---------------------------------------------------------------------------
discount_router = APIRouter(prefix="/discounts", tags=["discounts"])


@discount_router.get("/{code}/validate")
async def validate_discount(code: str, subtotal: int = 0) -> dict:
    discount = discount_ledger.find(code)
    if discount is None:
        return {"valid": False, "message": "Discount code not found"}
    if not discount.is_valid():
        return {
            "valid": False,
            "message": "Discount code is no longer valid",
            "used_count": discount.used_count,
            "usage_limit": discount.usage_limit,
        }
    return {
        "valid": True,
        "discount": {
            "code": discount.code,
            "value_type": discount.value_type,
            "value": discount.value,
            "remaining_uses": discount.remaining_uses,
            "discount_amount": discount.calculate_discount(max(subtotal, 0)),
        },
    }


@discount_router.get("", response_model=DiscountListResponse)
async def list_discounts(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    admin: User = Depends(admin_user),
) -> DiscountListResponse:
    discounts, total = current_domain.repository_for(DiscountCode).list_recent(page=page, limit=limit)
    return DiscountListResponse(
        discounts=[_discount_response(discount) for discount in discounts],
        pagination=PaginationResponse.build(page, limit, total),
    )


@discount_router.post("", status_code=201, response_model=DiscountResponse)
async def create_discount(body: CreateDiscountRequest, admin: User = Depends(admin_user)) -> DiscountResponse:
    command = CreateDiscount(
        code=body.code,
        value_type=body.value_type,
        value=body.value,
        usage_limit=body.usage_limit,
        created_by=str(admin.id),
    )
    discount_id = current_domain.process(command, asynchronous=False)
    return _discount_response(_load_discount(discount_id))


@discount_router.put("/{discount_id}/toggle", response_model=DiscountResponse)
async def toggle_discount(discount_id: str, admin: User = Depends(admin_user)) -> DiscountResponse:
    _load_discount(discount_id)
    current_domain.process(ToggleDiscount(discount_id=discount_id), asynchronous=False)
    return _discount_response(_load_discount(discount_id))


@discount_router.get("/{discount_id}/usage", response_model=DiscountUsageListResponse)
async def discount_usage(discount_id: str, admin: User = Depends(admin_user)) -> DiscountUsageListResponse:
    discount = _load_discount(discount_id)
    return DiscountUsageListResponse(
        code=discount.code,
        used_count=discount.used_count,
        usage_limit=discount.usage_limit,
        usage_history=[
            DiscountUsageResponse(user_id=str(u.user_id), order_id=str(u.order_id), used_at=u.used_at)
            for u in sorted(discount.usage_history, key=lambda u: u.used_at)
        ],
    )


# ---------------------------------------------------------------------------
# Order Router
# ---------------------------------------------------------------------------
order_router = APIRouter(prefix="/orders", tags=["orders"])


@order_router.get("", response_model=OrderListResponse)
async def list_my_orders(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    user: User = Depends(required_user),
) -> OrderListResponse:
    entries, total = orders_for(user.id, page=page, limit=limit)
    repo = current_domain.repository_for(Order)
    return OrderListResponse(
        orders=[OrderResponse.from_order(repo.get(entry.order_id)) for entry in entries],
        pagination=PaginationResponse.build(page, limit, total),
    )


@order_router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: str, user: User = Depends(required_user)) -> OrderResponse:
    order = current_domain.repository_for(Order).get(order_id)
    if str(order.user_id) != str(user.id) and not user.is_admin:
        raise PermissionDenied("Not authorized to view this order")
    return OrderResponse.from_order(order)


@order_router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    body: UpdateOrderStatusRequest,
    admin: User = Depends(admin_user),
) -> OrderResponse:
    repo = current_domain.repository_for(Order)
    repo.get(order_id)
    command = UpdateOrderStatus(order_id=order_id, status=body.status, note=body.note)
    current_domain.process(command, asynchronous=False)
    return OrderResponse.from_order(repo.get(order_id))


# ---------------------------------------------------------------------------
# Cart Router
# ---------------------------------------------------------------------------
cart_router = APIRouter(prefix="/carts", tags=["carts"])


def _owner(user: User | None, session_id: str | None) -> dict:
    if user is not None:
        return {"user_id": str(user.id), "session_id": None}
    return {"user_id": None, "session_id": session_id}


@cart_router.get("/mine", response_model=CartResponse)
async def get_cart(
    user: User | None = Depends(optional_user),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    return _cart_response(CartStore().read(**_owner(user, x_session_id)))


@cart_router.post("/mine/items", response_model=CartResponse)
async def set_cart_item(
    body: SetCartItemRequest,
    user: User | None = Depends(optional_user),
    x_session_id: str | None = Header(default=None),
) -> CartResponse:
    owner = _owner(user, x_session_id)
    command = SetCartItem(
        **owner,
        product_id=body.product_id,
        variant_id=body.variant_id,
        quantity=body.quantity,
    )
    current_domain.process(command, asynchronous=False)
    return _cart_response(CartStore().read(**owner))


@cart_router.delete("/mine", response_model=StatusResponse)
async def clear_cart(
    user: User | None = Depends(optional_user),
    x_session_id: str | None = Header(default=None),
) -> StatusResponse:
    current_domain.process(ClearCart(**_owner(user, x_session_id)), asynchronous=False)
    return StatusResponse()


@cart_router.post("/mine/merge", response_model=CartResponse)
async def merge_cart(body: MergeCartRequest, user: User = Depends(required_user)) -> CartResponse:
    command = MergeSessionCart(user_id=str(user.id), session_id=body.session_id)
    current_domain.process(command, asynchronous=False)
    return _cart_response(CartStore().read(user_id=str(user.id)))


# ---------------------------------------------------------------------------
# Account Router
# ---------------------------------------------------------------------------
account_router = APIRouter(prefix="/auth", tags=["accounts"])


@account_router.post("/register", status_code=201, response_model=TokenResponse)
async def register(body: RegisterRequest) -> TokenResponse:
    command = RegisterUser(
        email=body.email,
        full_name=body.full_name,
        password=body.password,
        phone=body.phone,
    )
    user_id = current_domain.process(command, asynchronous=False)
    return TokenResponse(user_id=user_id, token=issue_token(user_id))


@account_router.post("/login", response_model=TokenResponse)
async def login(body: LoginRequest) -> TokenResponse:
    user = current_domain.repository_for(User).find_by_email(normalize_email(body.email))
    if user is None or not user.check_password(body.password):
        raise AuthenticationError("Invalid credentials")
    return TokenResponse(user_id=str(user.id), token=issue_token(user.id, role=user.role))


@account_router.post("/me/addresses", status_code=201, response_model=IdResponse)
async def add_address(body: NewAddressRequest, user: User = Depends(required_user)) -> IdResponse:
    command = AddAddress(
        user_id=str(user.id),
        street=body.street,
        city=body.city,
        province=body.province,
        country=body.country,
        label=body.label or "Home",
        full_name=body.full_name,
        phone=body.phone,
        is_default=body.is_default,
    )
    address_id = current_domain.process(command, asynchronous=False)
    return IdResponse(id=address_id)


@account_router.put("/me/addresses/{address_id}", response_model=AddressBookResponse)
async def update_address(
    address_id: str,
    body: UpdateAddressRequest,
    user: User = Depends(required_user),
) -> AddressBookResponse:
    command = UpdateAddress(user_id=str(user.id), address_id=address_id, **body.model_dump(exclude_none=True))
    current_domain.process(command, asynchronous=False)
    return _address_book_response(user.id)


@account_router.delete("/me/addresses/{address_id}", response_model=AddressBookResponse)
async def remove_address(address_id: str, user: User = Depends(required_user)) -> AddressBookResponse:
    current_domain.process(RemoveAddress(user_id=str(user.id), address_id=address_id), asynchronous=False)
    return _address_book_response(user.id)


# ---------------------------------------------------------------------------
# Product Router
# ---------------------------------------------------------------------------
product_router = APIRouter(prefix="/products", tags=["products"])


@product_router.post("", status_code=201, response_model=IdResponse)
async def create_product(body: CreateProductRequest, admin: User = Depends(admin_user)) -> IdResponse:
    command = CreateProduct(
        name=body.name,
        category=body.category,
        brand=body.brand,
        base_price=body.base_price,
        variants=json.dumps([variant.model_dump() for variant in body.variants]),
    )
    product_id = current_domain.process(command, asynchronous=False)
    return IdResponse(id=product_id)
