"""Payment provider callback schemas."""

from pydantic import Field

from src.models.order import OrderStatus
from src.schemas.order import CamelModel


class PaymentCallback(CamelModel):
    """Payment status notification sent by the provider.

    Both fields are optional here so that authentication is checked before
    the payload shape; missing values are reported as a 400 afterwards.
    """

    reference_id: str | int | None = Field(default=None, description="Order id sent as the payment reference")
    status: str | None = Field(default=None, description="Provider payment status")


class PaymentCallbackResponse(CamelModel):
    """Acknowledgement returned to the provider."""

    accepted: bool = Field(default=True, description="Callback authenticated and processed")
    applied: bool = Field(default=False, description="Whether an order status changed")
    order_status: OrderStatus | None = Field(default=None, description="Order status after processing")
    message: str = Field(description="Human-readable outcome")
