"""Back-office order console routes (administrators only)."""

import logging

from fastapi import APIRouter, Depends, Query

from src.api.deps import AdminUser, DbSession
from src.models.order import OrderStatus
from src.schemas.order import (
    AdminOrderListResponse,
    AdminOrderResponse,
    OrderCancellationResponse,
    OrderStatusUpdate,
    StatusSummary,
    StatusSummaryResponse,
)
from src.services.order_service import OrderService, get_order_service

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/orders",
    tags=["admin"],
    responses={
        401: {"description": "Authentication required"},
        403: {"description": "Administrator access required"},
    },
)


@router.get(
    "",
    response_model=AdminOrderListResponse,
    response_model_by_alias=True,
    summary="List all orders",
    description="Lists orders of every user, newest first, optionally filtered by status.",
)
async def list_orders(
    admin: AdminUser,
    session: DbSession,
    status: OrderStatus | None = Query(default=None, description="Filter by order status"),
    limit: int = Query(default=50, ge=1, le=200, description="Page size"),
    offset: int = Query(default=0, ge=0, description="Rows to skip"),
    order_service: OrderService = Depends(get_order_service),
) -> AdminOrderListResponse:
    """List orders for the back office."""
    orders = await order_service.list_orders(session, status=status, limit=limit, offset=offset)
    return AdminOrderListResponse(
        items=[AdminOrderResponse.model_validate(order) for order in orders],
        limit=limit,
        offset=offset,
    )


@router.get(
    "/summary",
    response_model=StatusSummaryResponse,
    response_model_by_alias=True,
    summary="Orders by status",
    description="Order count and summed totals for every status.",
)
async def get_status_summary(
    admin: AdminUser,
    session: DbSession,
    order_service: OrderService = Depends(get_order_service),
) -> StatusSummaryResponse:
    """Report order counts and amounts grouped by status."""
    summary = await order_service.get_status_summary(session)
    return StatusSummaryResponse(items=[StatusSummary(**row) for row in summary])


@router.get(
    "/{order_id}",
    response_model=AdminOrderResponse,
    response_model_by_alias=True,
    summary="Get any order",
    responses={404: {"description": "Order not found"}},
)
async def get_order(
    order_id: int,
    admin: AdminUser,
    session: DbSession,
    order_service: OrderService = Depends(get_order_service),
) -> AdminOrderResponse:
    """Get a single order regardless of its owner."""
    order = await order_service.get_order(session, order_id)
    return AdminOrderResponse.model_validate(order)


@router.put(
    "/{order_id}",
    response_model=AdminOrderResponse,
    response_model_by_alias=True,
    summary="Update order status and tracking code",
    description=(
        "Moves an order between pending, paid, shipped and delivered and sets the "
        "carrier tracking code. Omit trackingCode to keep the stored value; send an "
        "empty string to clear it. Cancellation goes through DELETE."
    ),
    responses={
        400: {"description": "Invalid status or transition"},
        404: {"description": "Order not found"},
    },
)
async def update_order(
    order_id: int,
    data: OrderStatusUpdate,
    admin: AdminUser,
    session: DbSession,
    order_service: OrderService = Depends(get_order_service),
) -> AdminOrderResponse:
    """Apply a back-office status update.

    Args:
        order_id: The order identifier.
        data: New status and optional tracking code.
        admin: The administrator performing the change.
        session: Database session.
        order_service: Injected order service.

    Returns:
        AdminOrderResponse: The updated order.
    """
    async with session.begin():
        order = await order_service.update_shipping(
            session,
            order_id,
            status=data.status,
            tracking_code=data.tracking_code,
            tracking_code_set="tracking_code" in data.model_fields_set,
        )
    logger.info("Admin %s set order %s to %s", admin.user_id, order_id, data.status.value)
    return AdminOrderResponse.model_validate(order)


@router.delete(
    "/{order_id}",
    response_model=OrderCancellationResponse,
    response_model_by_alias=True,
    summary="Cancel order",
    description="Cancels a pending or paid order and returns its items to stock.",
    responses={
        400: {"description": "Order already shipped, delivered or cancelled"},
        404: {"description": "Order not found"},
    },
)
async def cancel_order(
    order_id: int,
    admin: AdminUser,
    session: DbSession,
    order_service: OrderService = Depends(get_order_service),
) -> OrderCancellationResponse:
    """Cancel an order and restore its stock in one transaction.

    Orders are never deleted; this is a status change.

    Raises:
        InvalidTransitionError: 400 when the order is shipped, delivered or cancelled.
        OrderNotFoundError: 404 when the order does not exist.
    """
    async with session.begin():
        order = await order_service.mark_cancelled(session, order_id)
    logger.info("Admin %s cancelled order %s", admin.user_id, order_id)
    return OrderCancellationResponse(
        order_id=order.id,
        status=order.order_status,
        message="Order cancelled and stock restored",
    )
