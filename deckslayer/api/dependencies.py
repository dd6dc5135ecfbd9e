"""
FastAPI Dependencies

Reusable dependencies for authentication, rate limiting and app-state access.
"""

from fastapi import Depends, Request
from typing import Optional
from loguru import logger

from deckslayer.config import settings
from deckslayer.core.analysis_orchestrator import AnalysisOrchestrator
from deckslayer.core.exceptions import AuthenticationRequiredError, ForbiddenError, RateLimitedError
from deckslayer.services.auth_service import AuthenticatedUser
from deckslayer.utils.rate_limiter import (
    InMemoryRateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    resolve_identifier,
)


def analysis_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        name="analysis",
        max_requests=settings.rate_limit_analysis_max_requests,
        window_seconds=settings.rate_limit_analysis_window_seconds
    )


def rebuttal_policy() -> RateLimitPolicy:
    return RateLimitPolicy(
        name="rebuttal",
        max_requests=settings.rate_limit_rebuttal_max_requests,
        window_seconds=settings.rate_limit_rebuttal_window_seconds
    )


def extract_access_token(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, else the session cookie."""
    authorization = request.headers.get("Authorization", "")
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()

    return request.cookies.get(settings.auth_cookie_name)


async def get_optional_user(request: Request) -> Optional[AuthenticatedUser]:
    """
    Resolve the caller, or None when not signed in.

    Raises:
        UpstreamError: If the auth backend cannot be reached
    """
    token = extract_access_token(request)
    if not token:
        return None

    return await request.app.state.auth_service.get_user(token)


async def get_current_user(
    user: Optional[AuthenticatedUser] = Depends(get_optional_user)
) -> AuthenticatedUser:
    """
    Require a signed-in caller.

    Raises:
        AuthenticationRequiredError: 401 if there is no valid session
    """
    if user is None:
        raise AuthenticationRequiredError()
    return user


async def require_admin(user: AuthenticatedUser = Depends(get_current_user)) -> AuthenticatedUser:
    """
    Restrict a route to the configured admin allow-list.

    Raises:
        ForbiddenError: 403 if the caller's email is not on the list
    """
    if not user.email or user.email.lower() not in settings.admin_email_list:
        logger.warning(f"Non-admin {user.id} denied internal view")
        raise ForbiddenError()
    return user


def get_orchestrator(request: Request) -> AnalysisOrchestrator:
    return request.app.state.orchestrator


def enforce_rate_limit(
    request: Request,
    policy: RateLimitPolicy,
    user_id: Optional[str] = None
) -> RateLimitResult:
    """
    Count this request against `policy`.

    Returns:
        The result, for X-RateLimit-* response headers

    Raises:
        RateLimitedError: 429 once the caller's window is used up
    """
    rate_limiter: InMemoryRateLimiter = request.app.state.rate_limiter

    identifier = resolve_identifier(
        user_id=user_id,
        forwarded_for=request.headers.get("X-Forwarded-For"),
        client_host=request.client.host if request.client else None
    )

    result = rate_limiter.check_policy(identifier, policy)

    if not result.allowed:
        logger.warning(
            f"Rate limit exceeded for {policy.name}",
            extra={"identifier": identifier, "reset_in_ms": result.reset_in_ms}
        )
        raise RateLimitedError(
            retry_after=result.retry_after,
            limit=policy.max_requests,
            reset_in_ms=result.reset_in_ms
        )

    return result


def rate_limit_headers(result: RateLimitResult, policy: RateLimitPolicy) -> dict[str, str]:
    return {
        "X-RateLimit-Limit": str(policy.max_requests),
        "X-RateLimit-Remaining": str(result.remaining),
        "X-RateLimit-Reset": str(result.reset_in_ms),
    }
