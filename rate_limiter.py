"""
Rate limiting configuration for the governance API
"""
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import os


def get_limiter_storage_uri():
    """
    Get storage URI for rate limiter
    Uses Redis in production, memory in development
    """
    redis_url = os.environ.get('REDIS_URL')
    if redis_url:
        return redis_url
    return "memory://"


def get_limiter_storage_options():
    """Connection options only apply to a Redis backend."""
    if os.environ.get('REDIS_URL'):
        return {"socket_connect_timeout": 30}
    return {}


limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=get_limiter_storage_uri(),
    storage_options=get_limiter_storage_options(),
    default_limits=["1000 per hour", "100 per minute"],
    strategy="fixed-window",
)


def init_limiter(app):
    """Initialize rate limiter with Flask app"""
    limiter.init_app(app)
    return limiter
