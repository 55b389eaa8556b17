"""Rate limiting service for API endpoints."""

import logging

from slowapi import Limiter
from slowapi.util import get_remote_address

from src.survey.config import settings

logger = logging.getLogger(__name__)


# Setup and admin endpoints are unauthenticated, so limits are per client IP
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # No global limits, applied per endpoint
    storage_uri="memory://",  # In-memory storage for single-instance deployment
    enabled=settings.rate_limit_enabled,
)


class RateLimitTiers:
    """Rate limit tiers for different endpoint categories."""

    # Status and configuration reads
    DEFAULT = ["100 per minute", "1000 per hour"]

    # Credential writes (save/clear configuration, connection tests)
    WRITE = ["30 per minute", "200 per hour"]

    # Provisioning runs DDL against the backend
    PROVISIONING = ["5 per minute", "20 per hour"]


# Decorated endpoints must take a `request: Request` parameter (slowapi requirement)
default_rate_limit = limiter.limit(";".join(RateLimitTiers.DEFAULT))
write_rate_limit = limiter.limit(";".join(RateLimitTiers.WRITE))
provisioning_rate_limit = limiter.limit(";".join(RateLimitTiers.PROVISIONING))
