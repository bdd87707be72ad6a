import logging
import math
import time
from dataclasses import dataclass
from typing import Dict, Optional

from fastapi import Request, Response
from limits import parse
from limits.storage import MemoryStorage, Storage
from limits.strategies import FixedWindowRateLimiter

from contact_api.core.errors import RateLimitExceeded

log = logging.getLogger("uvicorn.error")


@dataclass(frozen=True)
class RateLimitState:
    limit: int
    remaining: int
    reset_after: float
    allowed: bool
    window_seconds: int

    def headers(self) -> Dict[str, str]:
        reset = str(max(0, math.ceil(self.reset_after)))
        headers = {
            "RateLimit-Policy": f"{self.limit};w={self.window_seconds}",
            "RateLimit-Limit": str(self.limit),
            "RateLimit-Remaining": str(self.remaining),
            "RateLimit-Reset": reset,
        }
        if not self.allowed:
            headers["Retry-After"] = reset
        return headers


class ContactRateLimiter:
    """Fixed-window quota per client address, backed by `limits` in-process storage."""

    def __init__(self, limit: int = 5, window_seconds: int = 60, storage: Optional[Storage] = None):
        self.limit = limit
        self.window_seconds = window_seconds
        self.item = parse(f"{limit}/{window_seconds} seconds")
        self._strategy = FixedWindowRateLimiter(storage or MemoryStorage())

    def hit(self, key: str) -> RateLimitState:
        allowed = self._strategy.hit(self.item, "contact", key)
        reset_time, remaining = self._strategy.get_window_stats(self.item, "contact", key)
        return RateLimitState(
            limit=self.limit,
            remaining=max(0, remaining),
            reset_after=reset_time - time.time(),
            allowed=allowed,
            window_seconds=self.window_seconds,
        )


def client_address(request: Request, trust_proxy: bool = False) -> str:
    if trust_proxy:
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def enforce_rate_limit(request: Request, response: Response) -> RateLimitState:
    limiter: ContactRateLimiter = request.app.state.rate_limiter
    settings = request.app.state.settings
    key = client_address(request, trust_proxy=settings.trust_proxy)

    state = limiter.hit(key)
    if not state.allowed:
        log.warning(f"[rate_limit] {key} exceeded {state.limit} requests on {request.url.path}")
        raise RateLimitExceeded(state.headers())

    request.state.rate_limit = state
    response.headers.update(state.headers())
    return state
