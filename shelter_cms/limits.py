from slowapi import Limiter
from slowapi.util import get_remote_address

from . import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)

api_limit = limiter.limit(settings.API_LIMIT)
auth_limit = limiter.limit(settings.AUTH_LIMIT)
form_limit = limiter.limit(settings.FORM_LIMIT)
