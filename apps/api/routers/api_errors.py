"""Shared translation of domain failures into HTTP responses."""

from typing import Optional

from fastapi import Header, HTTPException

from services.errors import AuditCreditsError
from services.timeouts import resolve_timeout


def to_http_exception(exc: AuditCreditsError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_dict())


async def request_timeout(
    x_request_timeout: Optional[float] = Header(default=None, alias="X-Request-Timeout"),
) -> float:
    """Deadline in seconds for this request, clamped to the configured ceiling."""
    return resolve_timeout(x_request_timeout)
