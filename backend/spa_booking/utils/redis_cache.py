import logging
import os
import time
from typing import Optional

import redis

from ..core.config import settings

logger = logging.getLogger(__name__)

_redis_client: Optional[redis.Redis] = None

BOOKING_ATTEMPT_KEY_PREFIX = "booking_attempt"


class _NullRedis:
    """No-op Redis client used when Redis is disabled or unavailable.

    Methods mirror the minimal surface used in this codebase so callers can
    proceed without needing try/except around get_redis_client().
    """

    def get(self, key: str):
        return None

    def set(self, key: str, value: str, ex: Optional[int] = None, nx: bool = False):
        return True

    def setex(self, key: str, expire: int, value: str):
        return None

    def delete(self, key: str):
        return 0

    def close(self):
        return None


def get_redis_client() -> redis.Redis:
    global _redis_client
    if _redis_client is None:
        url = (settings.REDIS_URL or "").strip()
        # Allow disabling via empty/none/disabled/false
        if not url or url.lower() in {"none", "disabled", "false", "0"}:
            _redis_client = _NullRedis()  # type: ignore[assignment]
            return _redis_client
        # Conservative socket timeouts so a slow Redis never stalls admission.
        conn_to = float(os.getenv("REDIS_CONNECT_TIMEOUT", "0.5"))
        read_to = float(os.getenv("REDIS_SOCKET_TIMEOUT", "0.5"))
        _redis_client = redis.from_url(
            url,
            decode_responses=True,
            socket_connect_timeout=conn_to,
            socket_timeout=read_to,
        )
    return _redis_client


def _attempt_key(identity: str) -> str:
    return f"{BOOKING_ATTEMPT_KEY_PREFIX}:{identity}"


def seconds_until_next_attempt(
    identity: str,
    window: Optional[int] = None,
    now: Optional[float] = None,
) -> int:
    """Return how long ``identity`` must wait before another booking attempt.

    ``0`` means the attempt may proceed. The last attempt timestamp is kept
    under a key that expires with the window, so the check is a rolling
    window rather than a fixed bucket.
    """
    window = settings.BOOKING_THROTTLE_SECONDS if window is None else window
    now = time.time() if now is None else now
    client = get_redis_client()
    try:
        raw = client.get(_attempt_key(identity))
    except redis.exceptions.RedisError as exc:
        logger.warning("Redis unavailable for booking throttle: %s", exc)
        return 0
    if raw is None:
        return 0
    try:
        last = float(raw)
    except (TypeError, ValueError):
        return 0
    elapsed = now - last
    if elapsed < 0 or elapsed >= window:
        return 0
    return max(1, int(window - elapsed + 0.999))


def record_booking_attempt(
    identity: str,
    window: Optional[int] = None,
    now: Optional[float] = None,
) -> None:
    window = settings.BOOKING_THROTTLE_SECONDS if window is None else window
    now = time.time() if now is None else now
    client = get_redis_client()
    try:
        client.setex(_attempt_key(identity), window, repr(now))
    except redis.exceptions.RedisError as exc:
        logger.warning("Could not record booking attempt: %s", exc)


def close_redis_client() -> None:
    """Close the global Redis client if it exists."""
    global _redis_client
    if _redis_client is not None:
        try:
            _redis_client.close()
        except redis.exceptions.RedisError as exc:  # pragma: no cover - best effort
            logger.warning("Error closing Redis client: %s", exc)
        finally:
            _redis_client = None
