"""Global constants for persevere.

Centralizes the defaults used when a caller omits retry settings,
making them discoverable, consistent, and easy to override via
``ResilienceConfig``.
"""

# =============================================================================
# Retry Defaults
# =============================================================================

DEFAULT_MAX_RETRIES = 3
"""Retries allowed after the first attempt when the policy omits max_retries."""

DEFAULT_BASE_DELAY_SECONDS = 1.0
"""Delay before the first retry; doubles for every retry after it."""

BACKOFF_MULTIPLIER = 2.0
"""Growth factor between successive backoff delays."""

# =============================================================================
# Fallback Cache
# =============================================================================

FALLBACK_CACHE_MAX_AGE_SECONDS = 300.0
"""How long a cached success value remains usable as a fallback (5 minutes)."""

# =============================================================================
# Text Truncation Limits (characters)
# =============================================================================

TRUNCATE_ERROR_MESSAGE_CHARS = 200
"""Maximum characters of an error message carried in log events."""

REQUEST_ID_PREFIX = "req_"
"""Prefix for request IDs generated when the caller supplies none."""
