"""Authoritative pricing of cart lines."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.error_handler import ProductNotFoundError, ValidationError
from src.core.money import to_money
from src.models.product import Product
from src.schemas.order import CartLine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PricedLine:
    """A cart line annotated with the unit price read at checkout."""

    product_id: int
    quantity: int
    unit_price: Decimal

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


@dataclass(frozen=True)
class PricedCart:
    """Priced lines and their subtotal."""

    lines: list[PricedLine]
    subtotal: Decimal


class PricingService:
    """Resolves current unit prices for cart lines."""

    async def resolve_prices(self, session: AsyncSession, lines: Sequence[CartLine]) -> PricedCart:
        """Price every line from the products table in one batch lookup.

        Args:
            session: Session of the surrounding checkout transaction.
            lines: Cart lines, at least one.

        Returns:
            PricedCart: Lines with captured unit prices and their subtotal.

        Raises:
            ValidationError: If lines is empty.
            ProductNotFoundError: For the first line whose product is missing
                or has no price. Nothing partial is returned.
        """
        if not lines:
            raise ValidationError("Cart is empty")

        product_ids = sorted({line.product_id for line in lines})
        result = await session.execute(
            select(Product.id, Product.price).where(Product.id.in_(product_ids))
        )
        prices: dict[int, Decimal | None] = {row.id: row.price for row in result}

        priced: list[PricedLine] = []
        subtotal = Decimal("0.00")
        for line in lines:
            price = prices.get(line.product_id)
            if price is None:
                logger.info("Pricing failed: product %s not found or unpriced", line.product_id)
                raise ProductNotFoundError(line.product_id)
            unit_price = to_money(price)
            priced.append(PricedLine(line.product_id, line.quantity, unit_price))
            subtotal += unit_price * line.quantity

        return PricedCart(lines=priced, subtotal=to_money(subtotal))
