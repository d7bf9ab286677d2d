"""Order ledger: persistence, lookups and guarded status transitions."""

import logging
from decimal import Decimal
from typing import Any
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.error_handler import InvalidTransitionError, OrderNotFoundError
from src.core.money import to_money
from src.models.order import Order, OrderItem, OrderStatus, PaymentMethod
from src.services.inventory_service import InventoryService
from src.services.pricing_service import PricedCart

logger = logging.getLogger(__name__)

# Columns that may change after an order is created. Amounts, owner, lines and
# address are fixed at checkout.
UPDATABLE_ORDER_FIELDS = frozenset({"status", "tracking_code", "payment_reference"})


def apply_order_changes(order: Order, changes: dict[str, Any]) -> Order:
    """Set allow-listed attributes on an order.

    Raises:
        ValueError: If changes names a field outside UPDATABLE_ORDER_FIELDS.
    """
    unknown = set(changes) - UPDATABLE_ORDER_FIELDS
    if unknown:
        raise ValueError(f"Order fields not updatable: {', '.join(sorted(unknown))}")
    for field, value in changes.items():
        if isinstance(value, OrderStatus):
            value = value.value
        setattr(order, field, value)
    return order


class OrderService:
    """Owns orders and order lines."""

    def __init__(self, inventory_service: InventoryService | None = None) -> None:
        """Initialize order service.

        Args:
            inventory_service: Optional inventory service for testing.
        """
        self.inventory = inventory_service or InventoryService()

    async def create(
        self,
        session: AsyncSession,
        user_id: UUID,
        priced_cart: PricedCart,
        shipping_address: dict[str, Any],
        shipping_cost: Decimal,
        discount: Decimal,
        payment_method: PaymentMethod,
    ) -> Order:
        """Insert a pending order and its lines with captured unit prices.

        The order is flushed so its id is available to the rest of the
        transaction; committing is the caller's job.
        """
        subtotal = to_money(priced_cart.subtotal)
        shipping_cost = to_money(shipping_cost)
        discount = to_money(discount)
        total_amount = subtotal - discount + shipping_cost
        if total_amount < 0:
            raise ValueError("Order total cannot be negative")

        order = Order(
            user_id=user_id,
            subtotal=subtotal,
            discount=discount,
            shipping_cost=shipping_cost,
            total_amount=total_amount,
            payment_method=payment_method.value,
            status=OrderStatus.PENDING.value,
            shipping_address=shipping_address,
            items=[
                OrderItem(
                    product_id=line.product_id,
                    quantity=line.quantity,
                    unit_price=line.unit_price,
                )
                for line in priced_cart.lines
            ],
        )
        session.add(order)
        await session.flush()

        logger.info(
            "Order %s created for user %s: %d line(s), total %s",
            order.id,
            user_id,
            len(order.items),
            total_amount,
        )
        return order

    async def get_order(
        self,
        session: AsyncSession,
        order_id: int,
        user_id: UUID | None = None,
    ) -> Order:
        """Get an order with its lines.

        Args:
            session: Database session.
            order_id: Order identifier.
            user_id: When given, orders owned by another user are reported
                as not found.

        Raises:
            OrderNotFoundError: If the order does not exist or is not visible.
        """
        query = select(Order).where(Order.id == order_id)
        if user_id is not None:
            query = query.where(Order.user_id == user_id)
        order = await session.scalar(query)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def list_orders_for_user(self, session: AsyncSession, user_id: UUID) -> list[Order]:
        """List a user's orders, newest first."""
        result = await session.scalars(
            select(Order)
            .where(Order.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result)

    async def list_orders(
        self,
        session: AsyncSession,
        status: OrderStatus | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Order]:
        """List all orders for the back office, newest first."""
        query = select(Order)
        if status is not None:
            query = query.where(Order.status == status.value)
        query = query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).offset(offset)
        result = await session.scalars(query)
        return list(result)

    async def get_status_summary(self, session: AsyncSession) -> list[dict[str, Any]]:
        """Count orders and sum their totals per status.

        Every status is present in the result, with zero values when unused.
        """
        result = await session.execute(
            select(
                Order.status,
                func.count(Order.id).label("count"),
                func.coalesce(func.sum(Order.total_amount), 0).label("total_amount"),
            ).group_by(Order.status)
        )
        rows = {row.status: row for row in result}
        summary = []
        for status in OrderStatus:
            row = rows.get(status.value)
            summary.append(
                {
                    "status": status,
                    "count": int(row.count) if row else 0,
                    "total_amount": to_money(row.total_amount) if row else Decimal("0.00"),
                }
            )
        return summary

    async def _lock_order(self, session: AsyncSession, order_id: int) -> Order:
        """Load an order with a row lock held until the transaction ends."""
        order = await session.scalar(
            select(Order)
            .where(Order.id == order_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def set_payment_reference(self, session: AsyncSession, order: Order, reference: str) -> None:
        apply_order_changes(order, {"payment_reference": reference})
        await session.flush()

    async def mark_paid(self, session: AsyncSession, order_id: int) -> bool:
        """Move a pending order to paid.

        Returns:
            bool: True if the status changed, False if it was already paid.

        Raises:
            OrderNotFoundError: If the order does not exist.
            InvalidTransitionError: If the order is shipped, delivered or cancelled.
        """
        order = await self._lock_order(session, order_id)
        current = order.order_status

        if current is OrderStatus.PAID:
            return False
        if current is not OrderStatus.PENDING:
            raise InvalidTransitionError(
                f"Order {order_id} is {current.value} and cannot be marked as paid",
                current_status=current.value,
            )

        apply_order_changes(order, {"status": OrderStatus.PAID})
        await session.flush()
        logger.info("Order %s marked as paid", order_id)
        return True

    async def mark_cancelled(self, session: AsyncSession, order_id: int) -> Order:
        """Cancel a pending or paid order and restore its stock.

        The status change and the stock restoration happen in the caller's
        transaction; the row lock keeps concurrent cancellations from both
        restoring stock.

        Raises:
            OrderNotFoundError: If the order does not exist.
            InvalidTransitionError: If the order is shipped, delivered or
                already cancelled.
        """
        order = await self._lock_order(session, order_id)
        current = order.order_status

        if not current.is_cancellable:
            raise InvalidTransitionError(
                f'Order {order_id} is in status "{current.value}" and cannot be cancelled',
                current_status=current.value,
            )

        apply_order_changes(order, {"status": OrderStatus.CANCELLED})
        await session.flush()
        await self.inventory.restore_stock(session, order_id)

        logger.info("Order %s cancelled from %s, stock restored", order_id, current.value)
        return order

    async def update_shipping(
        self,
        session: AsyncSession,
        order_id: int,
        status: OrderStatus,
        tracking_code: str | None = None,
        tracking_code_set: bool = False,
    ) -> Order:
        """Set an order's status and tracking code from the back office.

        No stock or payment side effects happen here. Cancellation has its
        own path (mark_cancelled) so that stock is restored.

        Args:
            session: Database session.
            order_id: Order identifier.
            status: New status.
            tracking_code: New tracking code; empty string clears it.
            tracking_code_set: Whether the caller supplied a tracking code at
                all. When False the stored code is kept.

        Raises:
            OrderNotFoundError: If the order does not exist.
            InvalidTransitionError: For cancellation through this path or when
                leaving a terminal status.
        """
        if status is OrderStatus.CANCELLED:
            raise InvalidTransitionError(
                "Orders are cancelled through the cancellation endpoint so that stock is restored"
            )

        order = await self._lock_order(session, order_id)
        current = order.order_status

        if current.is_terminal and status is not current:
            raise InvalidTransitionError(
                f'Order {order_id} is in status "{current.value}" and cannot move to "{status.value}"',
                current_status=current.value,
            )

        changes: dict[str, Any] = {"status": status}
        if tracking_code_set:
            changes["tracking_code"] = tracking_code or None
        apply_order_changes(order, changes)
        await session.flush()

        logger.info(
            "Order %s status updated %s -> %s (tracking=%s)",
            order_id,
            current.value,
            status.value,
            order.tracking_code,
        )
        return order


def get_order_service() -> OrderService:
    """Dependency provider for OrderService."""
    return OrderService()
