"""
HTTP middleware.
"""

import time

from fastapi import Request

from utilities.logger import get_logger

logger = get_logger("api.access")


async def log_requests(request: Request, call_next):
    """Log one access line per request: method, path, status and duration."""
    start = time.perf_counter()
    response = await call_next(request)
    duration_ms = (time.perf_counter() - start) * 1000

    logger.info(
        "request completed",
        method=request.method,
        path=request.url.path,
        status_code=response.status_code,
        duration_ms=round(duration_ms, 1),
    )
    return response
