"""Payment provider callbacks applied to the order ledger."""

import logging
import secrets
from dataclasses import dataclass

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.error_handler import (
    AuthorizationError,
    InvalidTransitionError,
    OrderNotFoundError,
    PersistenceError,
    ValidationError,
)
from src.core.config import get_settings
from src.models.order import OrderStatus
from src.services.order_service import OrderService

logger = logging.getLogger(__name__)

PAID_STATUSES = frozenset({"paid", "completed"})
CANCELLED_STATUSES = frozenset({"refunded", "chargeback", "cancelled"})


def map_provider_status(provider_status: str) -> OrderStatus | None:
    """Map a provider payment status to the order status it implies.

    Returns None for statuses that require no ledger change.
    """
    normalized = provider_status.strip().lower()
    if normalized in PAID_STATUSES:
        return OrderStatus.PAID
    if normalized in CANCELLED_STATUSES:
        return OrderStatus.CANCELLED
    return None


@dataclass(frozen=True)
class CallbackResult:
    """What happened to a callback after it was authenticated."""

    accepted: bool
    applied: bool
    order_status: OrderStatus | None
    message: str


class ReconciliationService:
    """Authenticates provider callbacks and drives order transitions."""

    def __init__(self, order_service: OrderService | None = None) -> None:
        """Initialize reconciliation service.

        Args:
            order_service: Optional order service for testing.
        """
        self.settings = get_settings()
        self.orders = order_service or OrderService()

    def authenticate(self, token: str | None) -> None:
        """Check the shared callback secret.

        Raises:
            AuthorizationError: If no secret is configured or the token differs.
        """
        expected = self.settings.payment_callback_token
        if not expected:
            logger.error("Payment callback rejected: PAYMENT_CALLBACK_TOKEN is not configured")
            raise AuthorizationError("Payment callbacks are not enabled")
        if not token or not secrets.compare_digest(token.encode(), expected.encode()):
            logger.warning("Payment callback rejected: invalid token")
            raise AuthorizationError("Invalid callback token")

    async def handle_callback(
        self,
        session: AsyncSession,
        token: str | None,
        reference_id: str | int | None,
        provider_status: str | None,
    ) -> CallbackResult:
        """Apply a provider payment notification.

        Callbacks may be delivered more than once and out of order. Everything
        after authentication is acknowledged, so the provider stops retrying;
        only a change the ledger allows is applied.

        Args:
            session: Fresh session; the transition runs in its own transaction.
            token: Shared secret presented by the provider.
            reference_id: Order id the payment was created for.
            provider_status: Provider payment status.

        Returns:
            CallbackResult: Acknowledgement with the outcome.

        Raises:
            AuthorizationError: Bad or missing token, checked before any lookup.
            ValidationError: Missing reference or status.
            PersistenceError: Unexpected database failure.
        """
        self.authenticate(token)

        if reference_id is None or str(reference_id).strip() == "" or not provider_status:
            raise ValidationError(
                "referenceId and status are required",
                details=[
                    {"loc": ["body", name], "msg": "Field required", "type": "missing"}
                    for name, value in (("referenceId", reference_id), ("status", provider_status))
                    if value is None or str(value).strip() == ""
                ],
            )

        target = map_provider_status(provider_status)
        if target is None:
            logger.info("Payment callback for %s with status %r ignored", reference_id, provider_status)
            return CallbackResult(True, False, None, f"Status {provider_status!r} requires no change")

        try:
            order_id = int(str(reference_id).strip())
        except ValueError:
            logger.warning("Payment callback with non-numeric reference %r ignored", reference_id)
            return CallbackResult(True, False, None, "Unknown payment reference")

        try:
            async with session.begin():
                if target is OrderStatus.PAID:
                    applied = await self.orders.mark_paid(session, order_id)
                else:
                    order = await self.orders.get_order(session, order_id)
                    if order.order_status is OrderStatus.CANCELLED:
                        applied = False
                    else:
                        await self.orders.mark_cancelled(session, order_id)
                        applied = True
        except OrderNotFoundError:
            logger.warning("Payment callback for unknown order %s ignored", order_id)
            return CallbackResult(True, False, None, "Unknown payment reference")
        except InvalidTransitionError as e:
            logger.warning(
                "Payment callback %r for order %s not applied: %s",
                provider_status,
                order_id,
                e.message,
            )
            current = OrderStatus(e.current_status) if e.current_status else None
            return CallbackResult(True, False, current, e.message)
        except SQLAlchemyError as e:
            logger.error("Payment callback for order %s failed on database error: %s", order_id, str(e))
            raise PersistenceError("Failed to apply payment callback") from e

        if applied:
            logger.info("Payment callback moved order %s to %s", order_id, target.value)
            message = f"Order {order_id} is now {target.value}"
        else:
            logger.info("Payment callback for order %s already applied (%s)", order_id, target.value)
            message = f"Order {order_id} is already {target.value}"
        return CallbackResult(True, applied, target, message)


def get_reconciliation_service() -> ReconciliationService:
    """Dependency provider for ReconciliationService."""
    return ReconciliationService()
