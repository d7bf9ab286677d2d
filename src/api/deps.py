"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt
from src.api.middleware.error_handler import AuthorizationError, RateLimitError
from src.core.config import get_settings
from src.core.database import get_db_session
from src.core.rate_limiter import get_rate_limiter
from src.schemas.auth import UserContext
from src.services.reconciliation_service import ReconciliationService, get_reconciliation_service


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        HTTPException: 401 if token is missing, invalid, or expired.
    """
    if not authorization:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authorization header required",
            headers={"WWW-Authenticate": "Bearer"},
        )

    parts = authorization.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid authorization header format. Expected: Bearer <token>",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        payload = decode_jwt(parts[1])
        return payload.to_user_context(get_settings().admin_role_name)

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Token has expired",
                headers={"WWW-Authenticate": "Bearer"},
            ) from e

        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=e.message,
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


CurrentUser = Annotated[UserContext, Depends(get_current_user)]


async def require_admin(user: CurrentUser) -> UserContext:
    """Allow only users holding the administrator capability.

    Raises:
        AuthorizationError: 403 for authenticated non-admin users.
    """
    if not user.is_admin:
        raise AuthorizationError("Administrator access required")
    return user


AdminUser = Annotated[UserContext, Depends(require_admin)]

DbSession = Annotated[AsyncSession, Depends(get_db_session)]


async def check_checkout_rate_limit(user: CurrentUser) -> None:
    """Limit checkout submissions per user.

    Raises:
        RateLimitError: If the user has exceeded the checkout rate limit.
    """
    settings = get_settings()
    limiter = get_rate_limiter()
    max_requests = settings.rate_limit_checkout_requests

    allowed, _remaining, retry_after = await limiter.check_and_increment(
        f"checkout:{user.user_id}",
        max_requests=max_requests,
        window_seconds=settings.rate_limit_window_seconds,
    )

    if not allowed:
        raise RateLimitError(
            message="Too many checkout attempts. Please wait before trying again.",
            retry_after=retry_after,
            limit=max_requests,
        )


CheckoutRateLimit = Annotated[None, Depends(check_checkout_rate_limit)]


async def verify_payment_callback_token(
    x_payment_token: Annotated[str | None, Header(description="Shared callback secret")] = None,
    reconciliation_service: ReconciliationService = Depends(get_reconciliation_service),
) -> str:
    """Authenticate a payment provider callback before its body is read.

    Raises:
        AuthorizationError: 403 if the token is missing, wrong, or callbacks
            are not configured.
    """
    reconciliation_service.authenticate(x_payment_token)
    return x_payment_token


CallbackToken = Annotated[str, Depends(verify_payment_callback_token)]
