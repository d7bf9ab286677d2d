"""Payment provider callback route."""

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError as PydanticValidationError

from src.api.deps import CallbackToken, DbSession
from src.api.middleware.error_handler import ValidationError, validation_error_details
from src.schemas.payment import PaymentCallback, PaymentCallbackResponse
from src.services.reconciliation_service import ReconciliationService, get_reconciliation_service

router = APIRouter(prefix="/payments", tags=["payments"])


async def read_callback_payload(request: Request) -> PaymentCallback:
    """Parse the callback body once the sender is authenticated.

    An empty body yields an empty payload; the missing fields are reported
    by the reconciliation service.

    Raises:
        ValidationError: 400 for malformed JSON or wrongly typed fields.
    """
    raw_body = await request.body()
    if not raw_body.strip():
        return PaymentCallback()
    try:
        return PaymentCallback.model_validate_json(raw_body)
    except PydanticValidationError as e:
        raise ValidationError(
            "Invalid callback payload",
            details=validation_error_details(e.errors()),
        ) from e


@router.post(
    "/callback",
    response_model=PaymentCallbackResponse,
    response_model_by_alias=True,
    summary="Payment status callback",
    description=(
        "Receives payment status notifications from the payment provider. "
        "Authenticated with the shared secret in X-Payment-Token before the body "
        "is read. Every authenticated callback is acknowledged with 200, including "
        "duplicates and notifications that no longer apply."
    ),
    responses={
        400: {"description": "Malformed body, or referenceId or status missing"},
        403: {"description": "Invalid callback token"},
    },
    openapi_extra={
        "requestBody": {
            "content": {"application/json": {"schema": PaymentCallback.model_json_schema(by_alias=True)}},
        }
    },
)
async def payment_callback(
    request: Request,
    token: CallbackToken,
    session: DbSession,
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> PaymentCallbackResponse:
    """Reconcile an order with the provider's payment status.

    Args:
        request: Raw request, read after authentication.
        token: Verified shared secret.
        session: Database session.
        reconciliation_service: Injected reconciliation service.

    Returns:
        PaymentCallbackResponse: Acknowledgement with the outcome.
    """
    data = await read_callback_payload(request)
    result = await reconciliation_service.handle_callback(
        session,
        token=token,
        reference_id=data.reference_id,
        provider_status=data.status,
    )
    return PaymentCallbackResponse(
        accepted=result.accepted,
        applied=result.applied,
        order_status=result.order_status,
        message=result.message,
    )
