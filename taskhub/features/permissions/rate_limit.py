"""
Per-user rate limiting for sensitive operations.

The default limiter keeps a process-local sliding window, which is only
correct for a single instance. Set RATE_LIMIT_STORAGE_URI to move the
counters into a shared store through the async API of the `limits` library.
"""
import threading
import time
from typing import Any, Callable, Dict, List, Optional, Protocol

from fastapi import Depends
from limits import RateLimitItemPerSecond
from limits.aio.strategies import MovingWindowRateLimiter
from limits.storage import storage_from_string

from taskhub.core import config
from taskhub.core.database.base import generate_ulid
from taskhub.features.permissions.errors import RateLimited
from taskhub.features.users.dependencies import get_current_user
from taskhub.features.users.models import User
from taskhub.utils import get_logger


log = get_logger(__name__)


class RateLimiter(Protocol):
    async def check(self, user_id: str) -> bool:
        """Record a hit for `user_id`; False when the cap is already reached."""
        ...

    async def reset(self, user_id: Optional[str] = None) -> None:
        ...


class SlidingWindowRateLimiter:
    """
    In-memory sliding window: user id -> timestamps of recent operations.

    Old timestamps are pruned lazily on each hit. The prune, count and
    append happen under one lock so concurrent requests from the same user
    cannot lose increments.
    """

    def __init__(
        self,
        max_requests: int = 10,
        window_seconds: float = 15 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._requests: Dict[str, List[float]] = {}
        self._lock = threading.Lock()

    def hit(self, user_id: str) -> bool:
        now = self._clock()
        with self._lock:
            recent = [ts for ts in self._requests.get(user_id, []) if now - ts < self.window_seconds]
            if len(recent) >= self.max_requests:
                self._requests[user_id] = recent
                return False
            recent.append(now)
            self._requests[user_id] = recent
            return True

    def clear(self, user_id: Optional[str] = None) -> None:
        with self._lock:
            if user_id is None:
                self._requests.clear()
            else:
                self._requests.pop(user_id, None)

    async def check(self, user_id: str) -> bool:
        return self.hit(user_id)

    async def reset(self, user_id: Optional[str] = None) -> None:
        self.clear(user_id)


def _async_storage_uri(storage_uri: str) -> str:
    return storage_uri if storage_uri.startswith("async+") else f"async+{storage_uri}"


class LimitsRateLimiter:
    """
    Moving-window limiter whose counters live in a `limits` async storage.

    Counters are keyed by `namespace` and user id. Without a namespace each
    instance gets a fresh one, so limiters sharing a storage never share a
    budget. Pass a fixed namespace to share one budget between replicas.
    """

    def __init__(
        self,
        max_requests: int,
        window_seconds: int,
        storage_uri: str = "memory://",
        namespace: Optional[str] = None,
        storage: Optional[Any] = None,
    ):
        self.item = RateLimitItemPerSecond(max_requests, window_seconds)
        self.namespace = namespace or f"sensitive-ops:{generate_ulid()}"
        self.storage = storage if storage is not None else storage_from_string(_async_storage_uri(storage_uri))
        self.strategy = MovingWindowRateLimiter(self.storage)

    async def check(self, user_id: str) -> bool:
        return await self.strategy.hit(self.item, self.namespace, user_id)

    async def reset(self, user_id: Optional[str] = None) -> None:
        """Clear one user's counter, or every counter in the storage backend."""
        if user_id is None:
            await self.storage.reset()
        else:
            await self.strategy.clear(self.item, self.namespace, user_id)


def build_rate_limiter(
    max_requests: int,
    window_seconds: int,
    storage_uri: Optional[str] = None,
    namespace: Optional[str] = None,
) -> RateLimiter:
    if storage_uri:
        log.info("Sensitive-ops rate limiter using shared storage %s", storage_uri.split("://")[0])
        return LimitsRateLimiter(max_requests, window_seconds, storage_uri, namespace=namespace)
    return SlidingWindowRateLimiter(max_requests, window_seconds)


def rate_limit_sensitive_ops(
    max_requests: Optional[int] = None,
    window_seconds: Optional[int] = None,
    limiter: Optional[RateLimiter] = None,
    scope: Optional[str] = None,
):
    """
    FastAPI dependency limiting how often one user may hit a route.

    Each call creates its own counter set, so two routes guarded by separate
    dependencies are limited independently. In a shared store `scope` names
    the counter set; give it a fixed value so every replica counts against
    the same budget.

    Usage:
        @router.post("/{workspace_id}/transfer-ownership")
        async def transfer(
            _: User = Depends(rate_limit_sensitive_ops(max_requests=5, scope="transfer")),
        ):
            ...
    """
    if limiter is None:
        limiter = build_rate_limiter(
            max_requests or config.SENSITIVE_OPS_MAX_REQUESTS,
            window_seconds or config.SENSITIVE_OPS_WINDOW_SECONDS,
            config.RATE_LIMIT_STORAGE_URI,
            namespace=scope,
        )

    async def rate_limit_dependency(current_user: User = Depends(get_current_user)) -> User:
        if not await limiter.check(current_user.id):
            log.warning("Rate limit exceeded for user %s", current_user.id)
            raise RateLimited()
        return current_user

    rate_limit_dependency.limiter = limiter
    return rate_limit_dependency
