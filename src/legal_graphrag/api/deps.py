"""
Request dependencies shared by the route modules.
"""

from typing import Callable

from fastapi import Depends, Request, Response

from legal_graphrag.storage.rate_limit import RateLimiter, RateLimitExceeded, RateLimitResult, get_rate_limiter


def client_ip(request: Request) -> str:
    """First ``X-Forwarded-For`` hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def enforce_rate_limit(
    limiter: RateLimiter,
    identifier: str,
    endpoint: str,
    response: Response | None = None,
) -> RateLimitResult:
    """Count one request; raise ``RateLimitExceeded`` when over the limit."""
    result = limiter.check(identifier, endpoint)
    if not result.allowed:
        raise RateLimitExceeded(result)
    if response is not None:
        response.headers.update(result.headers())
    return result


def rate_limit_by_ip(endpoint: str) -> Callable[..., RateLimitResult]:
    """Dependency limiting the route by client IP under ``endpoint``'s policy."""

    def dependency(
        request: Request,
        response: Response,
        limiter: RateLimiter = Depends(get_rate_limiter),
    ) -> RateLimitResult:
        return enforce_rate_limit(limiter, client_ip(request), endpoint, response)

    return dependency
