"""Checkout and order Pydantic schemas for API request/response models.

Public JSON uses camelCase field names; amounts are serialized as strings
with exactly two fractional digits.
"""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator
from pydantic.alias_generators import to_camel

from src.core.money import format_money
from src.models.order import OrderStatus, PaymentMethod

Money = Annotated[Decimal, PlainSerializer(format_money, return_type=str, when_used="json")]

# Largest value an INTEGER column holds on Postgres
MAX_DB_INTEGER = 2_147_483_647


class CamelModel(BaseModel):
    """Base model exposing camelCase aliases while accepting field names."""

    model_config = ConfigDict(
        from_attributes=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )


class CartLine(CamelModel):
    """A single product/quantity pair submitted by the client."""

    product_id: int = Field(ge=1, le=MAX_DB_INTEGER, description="Product identifier")
    quantity: int = Field(ge=1, le=MAX_DB_INTEGER, description="Quantity ordered (at least 1)")


class CheckoutRequest(CamelModel):
    """Body of POST /orders."""

    items: list[CartLine] = Field(min_length=1, description="Cart lines")
    shipping_address: dict[str, Any] = Field(
        min_length=1,
        description="Structured shipping address, stored verbatim",
    )
    shipping_cost: Decimal = Field(
        ge=0,
        max_digits=12,
        decimal_places=2,
        description="Shipping cost chosen from the carrier quote; zero for free shipping",
    )
    payment_method: PaymentMethod = Field(description="pix, credit_card or boleto")

    @field_validator("items")
    @classmethod
    def merge_duplicate_products(cls, items: list[CartLine]) -> list[CartLine]:
        """Collapse repeated product ids into one line, keeping first-seen order."""
        merged: dict[int, int] = {}
        for line in items:
            merged[line.product_id] = merged.get(line.product_id, 0) + line.quantity
            if merged[line.product_id] > MAX_DB_INTEGER:
                raise ValueError(f"Total quantity for product {line.product_id} is too large")
        return [CartLine(product_id=product_id, quantity=quantity) for product_id, quantity in merged.items()]


class CheckoutResponse(CamelModel):
    """Result of a successful checkout."""

    order_id: int = Field(description="Created order identifier")
    status: OrderStatus = Field(description="Order status (always pending on creation)")
    payment_method: PaymentMethod = Field(description="Payment method")
    subtotal: Money = Field(description="Sum of captured line prices")
    discount: Money = Field(description="Payment-method discount")
    shipping_cost: Money = Field(description="Shipping cost")
    total_amount: Money = Field(description="subtotal - discount + shipping cost")
    payment_details: dict[str, Any] | None = Field(
        default=None,
        description="Gateway payment instructions, null for methods settled out of band",
    )


class OrderItemResponse(CamelModel):
    """An order line as stored at checkout time."""

    product_id: int = Field(description="Product identifier")
    product_name: str | None = Field(default=None, description="Current catalog name of the product")
    quantity: int = Field(description="Quantity ordered")
    unit_price: Money = Field(description="Unit price captured at order time")
    line_total: Money = Field(description="unit_price * quantity")


class OrderResponse(CamelModel):
    """Order detail returned to its owner."""

    id: int = Field(description="Order identifier")
    status: OrderStatus = Field(description="Order status")
    payment_method: PaymentMethod = Field(description="Payment method")
    subtotal: Money = Field(description="Sum of line totals")
    discount: Money = Field(description="Payment-method discount")
    shipping_cost: Money = Field(description="Shipping cost")
    total_amount: Money = Field(description="Total charged")
    shipping_address: dict[str, Any] = Field(description="Shipping address")
    tracking_code: str | None = Field(default=None, description="Carrier tracking code")
    items: list[OrderItemResponse] = Field(description="Order lines")
    created_at: datetime = Field(description="Creation timestamp")
    updated_at: datetime = Field(description="Last update timestamp")


class OrderListResponse(CamelModel):
    """Schema for order list API responses."""

    items: list[OrderResponse] = Field(description="List of orders, newest first")


class AdminOrderResponse(OrderResponse):
    """Order detail for the back office."""

    user_id: UUID = Field(description="Owning user")
    payment_reference: str | None = Field(default=None, description="Gateway payment intent id")


class AdminOrderListResponse(CamelModel):
    """Paged admin order listing."""

    items: list[AdminOrderResponse] = Field(description="Orders, newest first")
    limit: int = Field(description="Page size")
    offset: int = Field(description="Rows skipped")


class OrderStatusUpdate(CamelModel):
    """Body of PUT /admin/orders/{id}."""

    status: OrderStatus = Field(description="New status")
    tracking_code: str | None = Field(
        default=None,
        max_length=100,
        description="Tracking code; omit to keep the current one, empty string to clear it",
    )


class OrderCancellationResponse(CamelModel):
    """Result of DELETE /admin/orders/{id}."""

    order_id: int = Field(description="Cancelled order")
    status: OrderStatus = Field(description="New status")
    message: str = Field(description="Human-readable outcome")


class StatusSummary(CamelModel):
    """Order count and amount for one status."""

    status: OrderStatus = Field(description="Order status")
    count: int = Field(description="Number of orders")
    total_amount: Money = Field(description="Sum of order totals")


class StatusSummaryResponse(CamelModel):
    """Admin reporting of orders grouped by status."""

    items: list[StatusSummary] = Field(description="One entry per status")
