"""Rate limiting for the reward service API.

Limits are keyed by client address and only enforced in production.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from reward_service.settings import settings

# Per-route limits for credential and reward endpoints
REGISTER_LIMIT = "5/minute"
LOGIN_LIMIT = "10/minute"
REFRESH_LIMIT = "30/minute"
REDEEM_LIMIT = "10/minute"

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["200/minute"],
    storage_uri="memory://",
    enabled=settings.env == "production",
)
