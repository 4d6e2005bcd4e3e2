# app/core/rate_limit.py
from slowapi import Limiter
from slowapi.util import get_remote_address

# Route decorators only attach this when settings.ENABLE_RATE_LIMITING is on.
limiter = Limiter(key_func=get_remote_address)
