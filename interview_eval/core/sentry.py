"""Sentry error reporting.

Enabled only when SENTRY_DSN is set. Provider, parse and cache failures
that the pipeline recovers from are logged but never sent as events; an
evaluation that fails outright is reported with its attempt trail.
"""

import logging
from typing import Any

from interview_eval.core.config import Settings, settings
from interview_eval.errors import AllProvidersFailedError, CacheError, ParseError, ProviderError

logger = logging.getLogger(__name__)

_RECOVERED = (ProviderError, ParseError, CacheError)


def before_send(event: dict[str, Any], hint: dict[str, Any]) -> dict[str, Any] | None:
    """Drop recovered failures; attach provider attempts to total failures."""
    exc_info = hint.get("exc_info")
    exc = exc_info[1] if exc_info else None
    if isinstance(exc, _RECOVERED):
        return None
    if isinstance(exc, AllProvidersFailedError):
        event.setdefault("extra", {})["attempts"] = [
            {"provider": a.provider, "error": a.error} for a in exc.attempts
        ]
    return event


def init_sentry(s: Settings | None = None) -> bool:
    """Initialize Sentry if SENTRY_DSN is configured. Returns True if initialized."""
    s = s or settings
    if not s.sentry_dsn:
        logger.debug("Sentry DSN not configured, skipping")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.httpx import HttpxIntegration
    from sentry_sdk.integrations.redis import RedisIntegration

    sentry_sdk.init(
        dsn=s.sentry_dsn,
        environment=s.app_env,
        traces_sample_rate=0.1 if s.app_env == "production" else 1.0,
        send_default_pii=False,  # transcripts are candidate data
        before_send=before_send,
        integrations=[HttpxIntegration(), RedisIntegration()],
    )
    logger.info("Sentry initialized (env=%s)", s.app_env)
    return True
