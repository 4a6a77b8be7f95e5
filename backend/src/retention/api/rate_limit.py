"""Rate limiting configuration for the retention API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from retention.settings import settings

# Single shared limiter instance - disabled outside production
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],
    storage_uri="memory://",
    enabled=settings.env == "production",
)
