import logging
import threading
import time

from fastapi import HTTPException, Request, status

from core.config import settings

logger = logging.getLogger(__name__)

# (client ip, scope) -> monotonic timestamps inside the current window
_RATE_LIMIT_STATE: dict[tuple[str, str], list[float]] = {}
_RATE_LIMIT_LOCK = threading.Lock()


def _client_ip(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def enforce_rate_limit(request: Request, scope: str, max_attempts: int, window_seconds: int) -> None:
    ip = _client_ip(request)
    now = time.monotonic()
    key = (ip, scope)
    with _RATE_LIMIT_LOCK:
        cutoff = now - window_seconds
        attempts = [ts for ts in _RATE_LIMIT_STATE.get(key, []) if ts >= cutoff]
        if len(attempts) >= max_attempts:
            _RATE_LIMIT_STATE[key] = attempts
            retry_after = max(1, int(attempts[0] + window_seconds - now) + 1)
            logger.warning("rate limit hit scope=%s ip=%s", scope, ip)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Too many {scope} requests from this IP, please try again later",
                headers={"Retry-After": str(retry_after)},
            )
        attempts.append(now)
        _RATE_LIMIT_STATE[key] = attempts


class RateLimit:
    """FastAPI dependency counting requests per client IP under one scope."""

    def __init__(self, scope: str, max_attempts: int, window_seconds: int):
        self.scope = scope
        self.max_attempts = max_attempts
        self.window_seconds = window_seconds

    async def __call__(self, request: Request) -> None:
        enforce_rate_limit(request, self.scope, self.max_attempts, self.window_seconds)


# Login/register: brute-force guard
auth_rate_limit = RateLimit("auth", settings.auth_rate_limit_max_attempts, settings.auth_rate_limit_window_seconds)
api_rate_limit = RateLimit("api", settings.api_rate_limit_max_requests, settings.api_rate_limit_window_seconds)
