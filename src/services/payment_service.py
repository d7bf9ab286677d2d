"""Payment intent creation with the external payment gateway (Stripe)."""

import asyncio
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any
from uuid import uuid4

import stripe

from src.api.middleware.error_handler import PaymentGatewayError
from src.core.config import get_settings
from src.core.money import format_money, to_minor_units
from src.core.stripe import get_stripe
from src.models.order import PaymentMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentIntentResult:
    """Gateway reference and the instructions shown to the buyer."""

    intent_id: str
    instructions: dict[str, Any]


class PaymentGatewayService:
    """Creates payment intents correlated to local orders."""

    def __init__(self) -> None:
        """Initialize payment gateway service with clients."""
        self.stripe = get_stripe()
        self.settings = get_settings()

    def _build_intent_params(
        self,
        order_id: int,
        amount: Decimal,
        payment_method: PaymentMethod,
        customer_email: str | None,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "amount": to_minor_units(amount),
            "currency": self.settings.stripe_currency,
            "metadata": {"reference_id": str(order_id)},
            "description": f"Order {order_id}",
            "idempotency_key": f"order-{order_id}-{uuid4().hex}",
        }
        if customer_email:
            params["receipt_email"] = customer_email

        if payment_method is PaymentMethod.PIX:
            # Confirming right away makes Stripe return the QR code in next_action
            params["payment_method_types"] = ["pix"]
            params["payment_method_data"] = {"type": "pix"}
            params["confirm"] = True
            params["return_url"] = f"{self.settings.frontend_url}/order/{order_id}/success"
        elif payment_method is PaymentMethod.CREDIT_CARD:
            params["payment_method_types"] = ["card"]
        else:
            raise PaymentGatewayError(f"Payment method {payment_method.value} is not settled through the gateway")
        return params

    @staticmethod
    def _extract_instructions(intent: Any, payment_method: PaymentMethod) -> dict[str, Any]:
        """Turn a PaymentIntent into the instructions returned by checkout."""
        instructions: dict[str, Any] = {
            "provider": "stripe",
            "paymentIntentId": intent["id"],
            "status": intent["status"],
        }
        if payment_method is PaymentMethod.PIX:
            next_action = intent.get("next_action") or {}
            pix = next_action.get("pix_display_qr_code") or {}
            instructions.update(
                {
                    "paymentUrl": pix.get("hosted_instructions_url"),
                    "qrCode": pix.get("data"),
                    "qrCodeImageUrl": pix.get("image_url_png"),
                    "expiresAt": pix.get("expires_at"),
                }
            )
        else:
            instructions["clientSecret"] = intent["client_secret"]
        return instructions

    async def create_payment_intent(
        self,
        order_id: int,
        amount: Decimal,
        payment_method: PaymentMethod,
        customer_email: str | None = None,
    ) -> PaymentIntentResult:
        """Create a payment intent for an order.

        The call is bounded by settings.payment_gateway_timeout_seconds. Stripe
        idempotency is keyed by the order id plus a per-call nonce: the
        client's own retries inside one call share the key, while an order id
        reused after a rolled-back checkout never replays an earlier intent.

        Args:
            order_id: Local order id, sent as the payment reference.
            amount: Amount to charge.
            payment_method: pix or credit_card.
            customer_email: Optional receipt email.

        Returns:
            PaymentIntentResult: Intent id and buyer instructions.

        Raises:
            PaymentGatewayError: If the gateway is not configured, rejects the
                request, or does not answer in time.
        """
        if not self.settings.stripe_secret_key:
            raise PaymentGatewayError(
                "Payment gateway is not configured. Please set STRIPE_SECRET_KEY environment variable."
            )

        params = self._build_intent_params(order_id, amount, payment_method, customer_email)
        timeout = self.settings.payment_gateway_timeout_seconds

        try:
            intent = await asyncio.wait_for(
                self.stripe.PaymentIntent.create_async(**params),
                timeout=timeout,
            )
        except asyncio.TimeoutError as e:
            logger.error("Payment gateway timed out after %.1fs for order %s", timeout, order_id)
            raise PaymentGatewayError("Payment gateway did not respond in time") from e
        except stripe.StripeError as e:
            logger.error("Stripe error creating payment intent for order %s: %s", order_id, str(e))
            raise PaymentGatewayError(f"Payment gateway rejected the request: {e.user_message or e}") from e

        logger.info(
            "Payment intent %s created for order %s (%s %s, %s)",
            intent["id"],
            order_id,
            format_money(amount),
            self.settings.stripe_currency,
            payment_method.value,
        )
        return PaymentIntentResult(
            intent_id=intent["id"],
            instructions=self._extract_instructions(intent, payment_method),
        )
