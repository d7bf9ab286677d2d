"""Storefront order routes: checkout and the buyer's order history."""

from fastapi import APIRouter, Depends, status

from src.api.deps import CheckoutRateLimit, CurrentUser, DbSession
from src.schemas.order import CheckoutRequest, CheckoutResponse, OrderListResponse, OrderResponse
from src.services.checkout_service import CheckoutService, get_checkout_service
from src.services.order_service import OrderService, get_order_service

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post(
    "",
    response_model=CheckoutResponse,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
    summary="Check out cart",
    description=(
        "Prices the cart from the catalog, reserves stock, records a pending order "
        "and returns payment instructions for pix and credit card payments."
    ),
    responses={
        400: {"description": "Invalid cart, unknown product or insufficient stock"},
        401: {"description": "Authentication required"},
        429: {"description": "Too many checkout attempts"},
        500: {"description": "Payment gateway or database failure; nothing was recorded"},
    },
)
async def create_order(
    data: CheckoutRequest,
    user: CurrentUser,
    session: DbSession,
    _rate_limit: CheckoutRateLimit,
    checkout_service: CheckoutService = Depends(get_checkout_service),
) -> CheckoutResponse:
    """Create an order from the submitted cart.

    Client-supplied prices are never read; unit prices come from the
    products table at checkout time.

    Args:
        data: Cart lines, shipping address, shipping cost and payment method.
        user: The authenticated buyer.
        session: Database session for the checkout transaction.
        checkout_service: Injected checkout orchestrator.

    Returns:
        CheckoutResponse: Order id, amounts and payment details.
    """
    result = await checkout_service.checkout(
        session,
        user_id=user.user_id,
        request=data,
        customer_email=user.email,
    )
    return CheckoutResponse(
        order_id=result.order_id,
        status=result.status,
        payment_method=result.payment_method,
        subtotal=result.subtotal,
        discount=result.discount,
        shipping_cost=result.shipping_cost,
        total_amount=result.total_amount,
        payment_details=result.payment_details,
    )


@router.get(
    "",
    response_model=OrderListResponse,
    response_model_by_alias=True,
    summary="List my orders",
    description="Returns the authenticated user's orders, newest first.",
)
async def list_my_orders(
    user: CurrentUser,
    session: DbSession,
    order_service: OrderService = Depends(get_order_service),
) -> OrderListResponse:
    """List all orders of the current user."""
    orders = await order_service.list_orders_for_user(session, user.user_id)
    return OrderListResponse(items=[OrderResponse.model_validate(order) for order in orders])


@router.get(
    "/{order_id}",
    response_model=OrderResponse,
    response_model_by_alias=True,
    summary="Get order by ID",
    description="Returns a single order. Orders of other users are reported as not found.",
    responses={404: {"description": "Order not found"}},
)
async def get_my_order(
    order_id: int,
    user: CurrentUser,
    session: DbSession,
    order_service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    """Get a single order owned by the current user.

    Args:
        order_id: The order identifier.
        user: The authenticated user.
        session: Database session.
        order_service: Injected order service.

    Returns:
        OrderResponse: The order with its lines.

    Raises:
        OrderNotFoundError: 404 if the order does not exist or is not owned by the user.
    """
    order = await order_service.get_order(session, order_id, user_id=user.user_id)
    return OrderResponse.model_validate(order)
