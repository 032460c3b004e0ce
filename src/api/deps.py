"""FastAPI dependency injection functions."""

from typing import Annotated

from fastapi import Depends, Header

from src.api.middleware.auth import AuthError, AuthErrorCode, decode_jwt, extract_bearer_token
from src.api.middleware.error_handler import AuthenticationError, AuthorizationError
from src.core.config import get_settings
from src.schemas.auth import UserContext
from src.services.order_lifecycle_service import OrderLifecycleService
from src.services.order_service import OrderService
from src.services.quote_service import QuoteService


async def get_current_user(
    authorization: Annotated[str, Header(description="Bearer token")] = "",
) -> UserContext:
    """Extract and validate the current user from the Authorization header.

    This dependency requires a valid JWT token in the Authorization header.
    Use this for endpoints that require authentication.

    Args:
        authorization: The Authorization header value (Bearer token).

    Returns:
        UserContext: The authenticated user's context.

    Raises:
        AuthenticationError: 401 if token is missing, invalid, or expired.
    """
    try:
        payload = decode_jwt(extract_bearer_token(authorization))
        return payload.to_user_context()

    except AuthError as e:
        if e.code == AuthErrorCode.TOKEN_EXPIRED:
            raise AuthenticationError("Token has expired") from e
        raise AuthenticationError(e.message) from e


CurrentUser = Annotated[UserContext, Depends(get_current_user)]


async def require_admin(user: CurrentUser) -> UserContext:
    """Allow only users holding the configured admin role.

    Raises:
        AuthorizationError: 403 if the user is not an admin.
    """
    if user.role != get_settings().admin_role:
        raise AuthorizationError("Admin access required")
    return user


AdminUser = Annotated[UserContext, Depends(require_admin)]


# Service providers, overridable in tests via app.dependency_overrides


def get_quote_service() -> QuoteService:
    return QuoteService()


def get_order_service() -> OrderService:
    return OrderService()


def get_order_lifecycle_service() -> OrderLifecycleService:
    return OrderLifecycleService()


QuoteServiceDep = Annotated[QuoteService, Depends(get_quote_service)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
OrderLifecycleServiceDep = Annotated[OrderLifecycleService, Depends(get_order_lifecycle_service)]
