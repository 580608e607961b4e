import os

from slowapi import Limiter
from slowapi.util import get_remote_address

# Shared limiter instance; storage in Redis so limits hold across workers.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
    enabled=os.getenv("ENV_NAME", "development") not in ("development", "test"),
)
