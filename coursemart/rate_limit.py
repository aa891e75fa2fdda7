"""
Global slowapi rate limiter.

Mounted onto app.state in main.py so SlowAPIMiddleware applies the default
limit to every route. Webhook routes are exempt: providers retry on 429 and
their deliveries are already authenticated.

Storage: in-memory by default; set RATE_LIMIT_STORAGE_URI (e.g. a Redis URL)
when running more than one worker.
"""
from slowapi import Limiter
from slowapi.util import get_remote_address

from coursemart.config import Settings

_settings = Settings()

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[_settings.rate_limit_default],
    storage_uri=_settings.rate_limit_storage_uri,
)
