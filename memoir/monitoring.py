"""
Monitoring and error tracking configuration.

Integrates Sentry for error tracking when SENTRY_DSN is configured. The
capture helpers are no-ops until setup_sentry() has initialised the SDK.
"""

import logging
from typing import Optional

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

from memoir.config import settings

logger = logging.getLogger(__name__)


def setup_sentry() -> Optional[object]:
    """
    Initialize Sentry for error tracking if DSN is configured.

    Returns:
        Sentry SDK module or None if not configured
    """
    if not settings.sentry_dsn:
        logger.info("Sentry not configured (SENTRY_DSN not set)")
        return None

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.environment,
        integrations=[
            SqlalchemyIntegration(),
            LoggingIntegration(
                level=logging.INFO,
                event_level=logging.ERROR,
            ),
        ],
        traces_sample_rate=0.1 if settings.environment == "production" else 1.0,
        release=f"memoir@{settings.environment}",
    )

    logger.info(f"Sentry initialized for environment: {settings.environment}")
    return sentry_sdk


def capture_exception(error: Exception, context: Optional[dict] = None) -> None:
    """
    Capture exception in Sentry if configured.

    Args:
        error: Exception to capture
        context: Additional context to include
    """
    if context:
        with sentry_sdk.new_scope() as scope:
            for key, value in context.items():
                scope.set_extra(key, value)
            sentry_sdk.capture_exception(error)
    else:
        sentry_sdk.capture_exception(error)


def capture_message(message: str, level: str = "info", context: Optional[dict] = None) -> None:
    """
    Capture message in Sentry if configured.

    Args:
        message: Message to capture
        level: Log level (info, warning, error)
        context: Additional context to include
    """
    if context:
        with sentry_sdk.new_scope() as scope:
            for key, value in context.items():
                scope.set_extra(key, value)
            sentry_sdk.capture_message(message, level=level)
    else:
        sentry_sdk.capture_message(message, level=level)
