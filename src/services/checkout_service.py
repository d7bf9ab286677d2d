"""Checkout orchestration: cart to priced, stock-adjusted, payable order."""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.error_handler import APIError, PersistenceError, ValidationError
from src.core.config import get_settings
from src.core.money import to_money
from src.models.order import OrderStatus, PaymentMethod
from src.schemas.order import CheckoutRequest
from src.services.inventory_service import InventoryService
from src.services.order_service import OrderService
from src.services.payment_service import PaymentGatewayService
from src.services.pricing_service import PricingService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckoutResult:
    """Outcome of a committed checkout."""

    order_id: int
    status: OrderStatus
    payment_method: PaymentMethod
    subtotal: Decimal
    discount: Decimal
    shipping_cost: Decimal
    total_amount: Decimal
    payment_details: dict[str, Any] | None


class CheckoutService:
    """Runs checkout as one unit of work.

    Pricing, stock reservation, order persistence and payment intent creation
    share one database transaction. The gateway call comes last, so a gateway
    failure rolls back the order and the stock decrements with it.
    """

    def __init__(
        self,
        pricing_service: PricingService | None = None,
        inventory_service: InventoryService | None = None,
        order_service: OrderService | None = None,
        payment_gateway: PaymentGatewayService | None = None,
    ) -> None:
        """Initialize checkout service.

        Args:
            pricing_service: Optional pricing service for testing.
            inventory_service: Optional inventory service for testing.
            order_service: Optional order service for testing.
            payment_gateway: Optional payment gateway for testing.
        """
        self.settings = get_settings()
        self.pricing = pricing_service or PricingService()
        self.inventory = inventory_service or InventoryService()
        self.orders = order_service or OrderService(self.inventory)
        self._payment_gateway = payment_gateway

    @property
    def payment_gateway(self) -> PaymentGatewayService:
        if self._payment_gateway is None:
            self._payment_gateway = PaymentGatewayService()
        return self._payment_gateway

    def compute_discount(self, subtotal: Decimal, payment_method: PaymentMethod) -> Decimal:
        """Instant-transfer discount on the subtotal; shipping is never discounted."""
        if not payment_method.is_instant_transfer:
            return Decimal("0.00")
        return to_money(subtotal * self.settings.instant_transfer_discount_rate)

    @staticmethod
    def _validate(request: CheckoutRequest) -> None:
        if not request.items:
            raise ValidationError("Cart is empty")
        if not request.shipping_address:
            raise ValidationError("Shipping address is required")
        if request.shipping_cost < 0:
            raise ValidationError(
                "Shipping cost cannot be negative",
                details=[{"loc": ["shippingCost"], "msg": "must be >= 0", "type": "value_error"}],
            )

    async def checkout(
        self,
        session: AsyncSession,
        user_id: UUID,
        request: CheckoutRequest,
        customer_email: str | None = None,
    ) -> CheckoutResult:
        """Turn a cart into a pending order with payment instructions.

        Args:
            session: Fresh session; the whole checkout runs in one transaction on it.
            user_id: Authenticated buyer.
            request: Validated checkout request.
            customer_email: Optional email forwarded to the gateway for receipts.

        Returns:
            CheckoutResult: Order id, amounts and payment instructions.

        Raises:
            ValidationError: Malformed request.
            ProductNotFoundError: Unknown or unpriced product.
            InsufficientStockError: A line exceeds available stock.
            PaymentGatewayError: Gateway failure or timeout.
            PersistenceError: Unexpected database failure.
        """
        self._validate(request)
        payment_method = request.payment_method
        shipping_cost = to_money(request.shipping_cost)

        logger.info(
            "Checkout started for user %s: %d line(s), payment=%s",
            user_id,
            len(request.items),
            payment_method.value,
        )

        try:
            async with session.begin():
                priced_cart = await self.pricing.resolve_prices(session, request.items)
                await self.inventory.reserve_stock(session, priced_cart.lines)

                discount = self.compute_discount(priced_cart.subtotal, payment_method)
                order = await self.orders.create(
                    session,
                    user_id=user_id,
                    priced_cart=priced_cart,
                    shipping_address=request.shipping_address,
                    shipping_cost=shipping_cost,
                    discount=discount,
                    payment_method=payment_method,
                )

                payment_details = None
                if payment_method.requires_gateway:
                    intent = await self.payment_gateway.create_payment_intent(
                        order_id=order.id,
                        amount=order.total_amount,
                        payment_method=payment_method,
                        customer_email=customer_email,
                    )
                    await self.orders.set_payment_reference(session, order, intent.intent_id)
                    payment_details = intent.instructions
        except APIError as e:
            logger.warning("Checkout rolled back for user %s: %s", user_id, e.message)
            raise
        except SQLAlchemyError as e:
            logger.error("Checkout rolled back for user %s on database error: %s", user_id, str(e))
            raise PersistenceError("Failed to persist the order") from e

        logger.info("Checkout committed: order %s, total %s", order.id, order.total_amount)
        return CheckoutResult(
            order_id=order.id,
            status=order.order_status,
            payment_method=payment_method,
            subtotal=order.subtotal,
            discount=order.discount,
            shipping_cost=order.shipping_cost,
            total_amount=order.total_amount,
            payment_details=payment_details,
        )


def get_checkout_service() -> CheckoutService:
    """Dependency provider for CheckoutService."""
    return CheckoutService()
