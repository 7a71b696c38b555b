# student_registry/core/rate_limiter.py

from typing import Optional

from fastapi import Request
from loguru import logger
from slowapi import Limiter
from slowapi.util import get_remote_address

from student_registry.core.config import settings

AUTH_LIMIT = "10/minute"
PASSWORD_RESET_LIMIT = "5/minute"


def get_real_ip(request: Request) -> str:
    """Client IP behind a proxy: X-Forwarded-For, then X-Real-IP, then the peer."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        # Leftmost entry is the original client
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()

    return get_remote_address(request)


def build_limiter(storage_uri: Optional[str] = None) -> Limiter:
    """
    Shared counters in Redis when a URL is configured, process memory
    otherwise. A Redis setup error drops back to memory instead of
    failing the import.
    """
    if storage_uri:
        try:
            limiter = Limiter(
                key_func=get_real_ip,
                storage_uri=storage_uri,
                strategy="fixed-window",
                enabled=settings.RATE_LIMIT_ENABLED,
            )
            logger.info("Rate limiter using Redis storage")
            return limiter
        except Exception as e:
            logger.error(f"Redis rate limit storage unavailable, using memory: {e}")

    logger.info("Rate limiter using in-memory storage")
    return Limiter(key_func=get_real_ip, enabled=settings.RATE_LIMIT_ENABLED)


limiter = build_limiter(settings.REDIS_URL)
