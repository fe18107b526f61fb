"""Composition root: wire settings, providers and cache into an orchestrator.

The web layer calls ``build_orchestrator()`` once at startup and keeps the
instance; everything below it receives its configuration explicitly.
"""

from __future__ import annotations

import logging

from interview_eval.cache.store import CacheStore
from interview_eval.core.config import EvaluatorConfig, Settings, settings, validate_settings_for_production
from interview_eval.core.logging import setup_logging
from interview_eval.core.sentry import init_sentry
from interview_eval.evaluation.orchestrator import EvaluationOrchestrator
from interview_eval.gateway.providers import build_providers

logger = logging.getLogger(__name__)


def build_orchestrator(
    s: Settings | None = None,
    cache: CacheStore | None = None,
    configure_runtime: bool = True,
) -> EvaluationOrchestrator:
    """Build a ready-to-use orchestrator from settings.

    Args:
        s: Settings to use (defaults to the process-wide settings)
        cache: Pre-built cache store; a Redis one is created from REDIS_URL otherwise
        configure_runtime: Set up logging and Sentry (disable in tests)
    """
    s = s or settings
    if configure_runtime:
        setup_logging(s)
        init_sentry(s)
    if s.app_env == "production":
        validate_settings_for_production(s)

    config = EvaluatorConfig.from_settings(s)
    primary, secondary = build_providers(config)
    if cache is None:
        cache = CacheStore.from_url(s.redis_url)

    logger.info(
        "Evaluation orchestrator ready (primary=%s, secondary=%s, strategy=%s)",
        primary.name if primary else "disabled",
        secondary.name if secondary else "disabled",
        config.prompt_strategy,
    )
    return EvaluationOrchestrator(config, primary, secondary, cache)
