"""
core/limiter.py -- Shared slowapi rate limiter instance.

Imported by api/main.py (to mount as middleware) and by the login routes in
api/routes/auth.py and web/routes.py (to apply per-route limits with
@limiter.limit()). It lives in core/ because both surfaces use it and api/
and web/ never import each other.

A single shared instance means all routes share the same in-memory counter
store. Separate instances per module would each keep their own counters and
limits would never trigger.
"""

from slowapi import Limiter
from slowapi.util import get_remote_address

from core.config import get_settings

limiter = Limiter(key_func=get_remote_address, storage_uri="memory://")

# Brute-force mitigation for every password login endpoint.
LOGIN_RATE_LIMIT = get_settings().login_rate_limit
