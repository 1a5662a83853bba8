import logging
import time
from typing import Optional
from fastapi import Request
from jose import jwt, JWTError
from remindme.services.auth_service import ALGORITHM, SECRET_KEY

logger = logging.getLogger("remindme.requests")

SKIP_PATHS = ["/healthy", "/docs", "/openapi.json", "/redoc"]


async def request_logging_middleware(request: Request, call_next):
    """Log one line per request with status, latency and caller."""
    path = request.url.path
    if path in SKIP_PATHS:
        return await call_next(request)

    start_time = time.time()

    user_id: Optional[int] = None
    auth_header = request.headers.get("authorization", "")
    if auth_header.lower().startswith("bearer ") and not path.startswith("/api/cron"):
        token = auth_header.split(" ", 1)[1].strip()
        try:
            user_id = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM]).get("id")
        except JWTError:
            # The endpoint rejects bad tokens itself
            user_id = None

    ip_address = request.headers.get("x-forwarded-for") or (
        request.client.host if request.client else None
    )
    method = request.method

    try:
        response = await call_next(request)
    except Exception as exc:
        duration_ms = int((time.time() - start_time) * 1000)
        logger.error(
            f"{method} {path} failed after {duration_ms}ms "
            f"ip={ip_address} user={user_id}: {exc}"
        )
        raise

    duration_ms = int((time.time() - start_time) * 1000)
    logger.info(
        f"{method} {path} {response.status_code} {duration_ms}ms "
        f"ip={ip_address} user={user_id}"
    )
    return response
