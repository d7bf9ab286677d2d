"""Stripe SDK configuration."""

import logging

import stripe

from src.core.config import get_settings

logger = logging.getLogger(__name__)


def configure_stripe() -> None:
    """Configure the Stripe SDK with the API key from settings.

    This should be called once at application startup. Without a key,
    checkouts that need a payment intent fail with a gateway error.
    """
    settings = get_settings()
    if settings.stripe_secret_key:
        stripe.api_key = settings.stripe_secret_key
        stripe.set_app_info(settings.app_name)
        logger.info("Stripe SDK configured (test_mode=%s)", settings.is_stripe_test_mode)
    else:
        logger.warning("Stripe secret key not configured. Card and pix checkouts will fail.")


def get_stripe() -> stripe:
    """Get the configured Stripe module.

    Returns:
        stripe: The Stripe module with API key configured.

    Note:
        Stripe SDK uses module-level configuration, so this returns
        the stripe module itself.
    """
    return stripe
