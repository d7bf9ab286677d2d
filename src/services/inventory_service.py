"""Stock reservation and restoration.

This module is the only writer of products.stock_quantity. Both operations
run inside the caller's transaction and rely on it for all-or-nothing
behavior.
"""

import logging
from collections import Counter
from collections.abc import Sequence

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.error_handler import InsufficientStockError, ProductNotFoundError
from src.models.order import OrderItem
from src.models.product import Product
from src.services.pricing_service import PricedLine

logger = logging.getLogger(__name__)


class InventoryService:
    """Atomic stock decrement at checkout and additive restore on cancellation."""

    async def reserve_stock(self, session: AsyncSession, lines: Sequence[PricedLine]) -> None:
        """Decrement stock for every line or fail without leaving partial changes.

        Each decrement is a conditional UPDATE guarded by
        ``stock_quantity >= quantity``, so the row lock taken by the UPDATE
        serializes competing checkouts per product. Products are processed in
        ascending id order to keep lock acquisition order stable.

        Raises:
            InsufficientStockError: Naming the first product that cannot cover
                its requested quantity. The caller must roll back.
        """
        requested = Counter()
        for line in lines:
            requested[line.product_id] += line.quantity

        for product_id in sorted(requested):
            quantity = requested[product_id]
            result = await session.execute(
                update(Product)
                .where(Product.id == product_id, Product.stock_quantity >= quantity)
                .values(stock_quantity=Product.stock_quantity - quantity)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount != 1:
                available = await session.scalar(
                    select(Product.stock_quantity).where(Product.id == product_id)
                )
                if available is None:
                    raise ProductNotFoundError(product_id)
                logger.info(
                    "Insufficient stock for product %s: requested %d, available %d",
                    product_id,
                    quantity,
                    available,
                )
                raise InsufficientStockError(product_id, quantity, available)

        logger.debug("Reserved stock for %d product(s)", len(requested))

    async def restore_stock(self, session: AsyncSession, order_id: int) -> dict[int, int]:
        """Add every line quantity of an order back to its product's stock.

        Restoration is additive, so unrelated stock changes since checkout are
        preserved. Callers must guard this with the order's transition into
        cancelled; calling it twice credits the stock twice.

        Returns:
            dict: Quantity restored per product id.
        """
        result = await session.execute(
            select(OrderItem.product_id, func.sum(OrderItem.quantity).label("quantity"))
            .where(OrderItem.order_id == order_id)
            .group_by(OrderItem.product_id)
            .order_by(OrderItem.product_id)
        )
        restored = {row.product_id: int(row.quantity) for row in result}

        for product_id, quantity in restored.items():
            await session.execute(
                update(Product)
                .where(Product.id == product_id)
                .values(stock_quantity=Product.stock_quantity + quantity)
                .execution_options(synchronize_session=False)
            )

        logger.info("Restored stock for order %s: %s", order_id, restored)
        return restored
