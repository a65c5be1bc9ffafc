"""
Shared slowapi limiter.

Lives outside ``app.main`` so route modules can decorate endpoints without
importing the application.
"""
from slowapi import Limiter

from app.core import config
from app.features.users.dependencies import get_authorization_header


limiter = Limiter(key_func=get_authorization_header, enabled=config.RATE_LIMIT_ENABLED)
