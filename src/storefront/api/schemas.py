"""Pydantic request/response schemas for the Storefront API.

Requests accept snake_case field names and their camelCase aliases
(``cartItems``, ``pointsToUse`` ...). Responses are snake_case.
"""

import math
from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Shared sub-models
# ---------------------------------------------------------------------------
class CartItemSchema(RequestModel):
    product_id: str
    variant_id: str
    quantity: int = Field(ge=1)


class AddressSchema(RequestModel):
    label: str | None = Field(default=None, max_length=50)
    full_name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    street: str = Field(min_length=1, max_length=255)
    city: str = Field(min_length=1, max_length=100)
    province: str = Field(min_length=1, max_length=100)
    country: str = Field(default="Vietnam", max_length=100)


class NewAddressRequest(AddressSchema):
    is_default: bool = False


class UpdateAddressRequest(RequestModel):
    label: str | None = Field(default=None, max_length=50)
    full_name: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=20)
    street: str | None = Field(default=None, min_length=1, max_length=255)
    city: str | None = Field(default=None, min_length=1, max_length=100)
    province: str | None = Field(default=None, min_length=1, max_length=100)
    country: str | None = Field(default=None, max_length=100)
    is_default: bool | None = None


class GuestInfoSchema(RequestModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=20)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------
class CheckoutRequestSchema(RequestModel):
    cart_items: list[CartItemSchema]
    shipping_address_id: str | None = None
    shipping_address: AddressSchema | None = None
    payment_method: str = Field(default="cod", min_length=1, max_length=30)
    discount_code: str | None = Field(default=None, pattern=r"^[A-Za-z0-9]{5}$")
    points_to_use: int = Field(default=0, ge=0)
    guest_info: GuestInfoSchema | None = None
    session_id: str | None = None

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "cartItems": [{"productId": "p-1", "variantId": "v-1", "quantity": 2}],
                    "shippingAddress": {
                        "fullName": "Nguyen Van A",
                        "phone": "0901234567",
                        "street": "12 Le Loi",
                        "city": "District 1",
                        "province": "Ho Chi Minh City",
                    },
                    "paymentMethod": "cod",
                    "guestInfo": {"email": "guest@example.com", "fullName": "Nguyen Van A"},
                }
            ]
        },
    )


class PreviewRequestSchema(RequestModel):
    cart_items: list[CartItemSchema]
    discount_code: str | None = None
    points_to_use: int = Field(default=0, ge=0)


# ---------------------------------------------------------------------------
# Discounts
# ---------------------------------------------------------------------------
class CreateDiscountRequest(RequestModel):
    code: str
    value_type: str
    value: int = Field(ge=0)
    usage_limit: int = Field(ge=1)


# ---------------------------------------------------------------------------
# Orders
# ---------------------------------------------------------------------------
class UpdateOrderStatusRequest(RequestModel):
    status: str
    note: str | None = None


# ---------------------------------------------------------------------------
# Carts
# ---------------------------------------------------------------------------
class SetCartItemRequest(RequestModel):
    product_id: str
    variant_id: str
    quantity: int = Field(ge=0)


class MergeCartRequest(RequestModel):
    session_id: str = Field(min_length=1)


# ---------------------------------------------------------------------------
# Accounts
# ---------------------------------------------------------------------------
class RegisterRequest(RequestModel):
    email: EmailStr
    full_name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=6)
    phone: str | None = Field(default=None, max_length=20)


class LoginRequest(RequestModel):
    email: str
    password: str


# ---------------------------------------------------------------------------
# Products
# ---------------------------------------------------------------------------
class VariantSchema(RequestModel):
    sku: str = Field(min_length=1)
    name: str = Field(min_length=1)
    price: int = Field(ge=0)
    inventory: int = Field(default=0, ge=0)
    attributes: dict | None = None


class CreateProductRequest(RequestModel):
    name: str = Field(min_length=1)
    category: str = Field(min_length=1)
    brand: str = Field(min_length=1)
    base_price: int = Field(ge=0)
    variants: list[VariantSchema]


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class OrderLineResponse(BaseModel):
    product_id: str
    variant_id: str
    product_name: str
    variant_name: str
    sku: str
    price: int
    quantity: int
    subtotal: int


class StatusEntryResponse(BaseModel):
    status: str
    time: datetime
    note: str | None = None


class OrderResponse(BaseModel):
    id: str
    order_number: str
    user_id: str
    items: list[OrderLineResponse]
    shipping_address: dict
    payment_method: str
    subtotal: int
    discount_code: str | None = None
    discount_amount: int
    points_used: int
    points_discount: int
    tax_amount: int
    shipping_fee: int
    total_amount: int
    points_earned: int
    current_status: str
    status_history: list[StatusEntryResponse]
    is_paid: bool
    paid_at: datetime | None = None
    created_at: datetime | None = None

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        return cls(
            id=str(order.id),
            order_number=order.order_number,
            user_id=str(order.user_id),
            items=[
                OrderLineResponse(
                    product_id=str(line.product_id),
                    variant_id=str(line.variant_id),
                    product_name=line.product_name,
                    variant_name=line.variant_name,
                    sku=line.sku,
                    price=line.price,
                    quantity=line.quantity,
                    subtotal=line.subtotal,
                )
                for line in order.items
            ],
            shipping_address=order.shipping_address.to_dict() if order.shipping_address else {},
            payment_method=order.payment_method,
            subtotal=order.subtotal,
            discount_code=order.discount_code,
            discount_amount=order.discount_amount,
            points_used=order.points_used,
            points_discount=order.points_discount,
            tax_amount=order.tax_amount,
            shipping_fee=order.shipping_fee,
            total_amount=order.total_amount,
            points_earned=order.points_earned,
            current_status=order.current_status,
            status_history=[
                StatusEntryResponse(status=entry.status, time=entry.time, note=entry.note)
                for entry in order.status_history
            ],
            is_paid=order.is_paid,
            paid_at=order.paid_at,
            created_at=order.created_at,
        )


class CheckoutResponse(BaseModel):
    order: OrderResponse
    token: str | None = None


class PriceBreakdownResponse(BaseModel):
    subtotal: int
    discount_code: str | None = None
    discount_valid: bool
    discount_amount: int
    points_used: int
    points_discount: int
    available_points: int
    tax_amount: int
    shipping_fee: int
    total_amount: int
    points_earned: int


class DiscountResponse(BaseModel):
    id: str
    code: str
    value_type: str
    value: int
    usage_limit: int
    used_count: int
    remaining_uses: int
    is_active: bool


class DiscountUsageResponse(BaseModel):
    user_id: str
    order_id: str
    used_at: datetime


class DiscountUsageListResponse(BaseModel):
    code: str
    used_count: int
    usage_limit: int
    usage_history: list[DiscountUsageResponse]


class PaginationResponse(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "PaginationResponse":
        return cls(page=page, limit=limit, total=total, total_pages=math.ceil(total / limit))


class DiscountListResponse(BaseModel):
    discounts: list[DiscountResponse]
    pagination: PaginationResponse


class OrderListResponse(BaseModel):
    orders: list[OrderResponse]
    pagination: PaginationResponse


class AddressResponse(BaseModel):
    id: str
    label: str | None = None
    full_name: str | None = None
    phone: str | None = None
    street: str
    city: str
    province: str
    country: str | None = None
    is_default: bool = False


class AddressBookResponse(BaseModel):
    addresses: list[AddressResponse]


class CartLineResponse(BaseModel):
    product_id: str
    variant_id: str
    quantity: int
    price: int


class CartResponse(BaseModel):
    cart_id: str | None = None
    items: list[CartLineResponse] = []
    total_amount: int = 0


class IdResponse(BaseModel):
    id: str


class StatusResponse(BaseModel):
    status: str = "ok"


class TokenResponse(BaseModel):
    user_id: str
    token: str
