"""Shared slowapi limiter (``IMX_RATE_LIMIT``; ``none`` disables it)."""

from __future__ import annotations

import warnings

# Suppress slowapi's use of deprecated asyncio.iscoroutinefunction (fixed upstream in Python 3.16)
warnings.filterwarnings(
    "ignore",
    message=r".*asyncio\.iscoroutinefunction.*",
    category=DeprecationWarning,
    module=r"slowapi\..*",
)
from slowapi import Limiter  # noqa: E402
from slowapi.util import get_remote_address  # noqa: E402

from intermax.config import settings  # noqa: E402

_rate_limit_enabled = settings.rate_limit.lower() != "none"
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[settings.rate_limit] if _rate_limit_enabled else [],
    enabled=_rate_limit_enabled,
)

# Stricter limit for credential endpoints.
LOGIN_RATE_LIMIT = "10/minute"
