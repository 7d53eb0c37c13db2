import logging
from typing import Optional

from fastapi import Request

from eventreg.config import settings
from eventreg.exceptions import TooManyRequests
from eventreg.utils.cache import TTLCache, cache

logger = logging.getLogger("eventreg.rate_limit")

RATE_LIMIT_PREFIX = "rate_limit:"


class RateLimiter:
    """
    Request counter per (client address, method, route). Every allowed hit
    rewrites the entry, so the window restarts from the latest request.

    Used as a router/route dependency:
        router = APIRouter(dependencies=[Depends(RateLimiter())])
    """

    def __init__(
        self,
        max_requests: Optional[int] = None,
        window_seconds: Optional[int] = None,
        store: TTLCache = cache,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self.store = store

    @property
    def limit(self) -> int:
        return self.max_requests if self.max_requests is not None else settings.RATE_LIMIT_MAX_REQUESTS

    @property
    def window(self) -> int:
        return self.window_seconds if self.window_seconds is not None else settings.RATE_LIMIT_WINDOW_SECONDS

    @staticmethod
    def key_for(request: Request) -> str:
        ip = request.client.host if request.client else "unknown"
        route = request.scope.get("route")
        path = getattr(route, "path", None) or request.url.path
        return f"{RATE_LIMIT_PREFIX}{ip}:{request.method}:{path}"

    def hit(self, key: str) -> None:
        current = self.store.get(key) or 0
        if current >= self.limit:
            logger.warning("Rate limit exceeded for %s", key)
            raise TooManyRequests(retry_after=self.window)
        self.store.set(key, current + 1, ttl=self.window)

    def __call__(self, request: Request) -> None:
        self.hit(self.key_for(request))
