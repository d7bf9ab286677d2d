"""Order and order line table mappings."""

from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, ForeignKey, Integer, Numeric, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from src.models.base import Base, TimestampMixin
from src.models.product import Product


class OrderStatus(str, Enum):
    """Order lifecycle states.

    pending -> paid -> shipped -> delivered, with pending|paid -> cancelled.
    """

    PENDING = "pending"
    PAID = "paid"
    SHIPPED = "shipped"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    @property
    def is_cancellable(self) -> bool:
        return self in (OrderStatus.PENDING, OrderStatus.PAID)


class PaymentMethod(str, Enum):
    """Accepted payment methods."""

    PIX = "pix"
    CREDIT_CARD = "credit_card"
    BOLETO = "boleto"

    @property
    def requires_gateway(self) -> bool:
        """Whether checkout must create a payment intent with the gateway.

        Boleto is settled out of band and has no payment instructions.
        """
        return self in (PaymentMethod.PIX, PaymentMethod.CREDIT_CARD)

    @property
    def is_instant_transfer(self) -> bool:
        return self is PaymentMethod.PIX


class Order(Base, TimestampMixin):
    """Order table row representation.

    Amounts are fixed at creation; only status, tracking_code and
    payment_reference change afterwards.
    """

    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[UUID] = mapped_column(Uuid, nullable=False, index=True)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    discount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    shipping_cost: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default=OrderStatus.PENDING.value, index=True
    )
    shipping_address: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
    tracking_code: Mapped[str | None] = mapped_column(String(100), nullable=True)
    payment_reference: Mapped[str | None] = mapped_column(String(255), nullable=True)

    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by="OrderItem.id",
    )

    @property
    def order_status(self) -> OrderStatus:
        return OrderStatus(self.status)


class OrderItem(Base):
    """Order line with the unit price captured at order time."""

    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), nullable=False, index=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id"), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    order: Mapped[Order] = relationship(back_populates="items")
    product: Mapped[Product | None] = relationship(lazy="selectin", viewonly=True)

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity

    @property
    def product_name(self) -> str | None:
        """Current catalog name of the product; not captured at order time."""
        return self.product.name if self.product is not None else None
