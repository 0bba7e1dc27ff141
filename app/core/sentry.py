"""Sentry error reporting.

Enabled only when SENTRY_DSN is set. Provider credentials travel in the
Authorization header of every outbound call, so events are scrubbed of it
before they leave the process.
"""

import logging

from app.core.config import settings

logger = logging.getLogger(__name__)

_SENSITIVE_HEADERS = {"authorization", "x-api-key"}


def scrub_event(event: dict, hint: dict | None = None) -> dict:
    """Drop credential headers from the request section and HTTP breadcrumbs."""
    headers = (event.get("request") or {}).get("headers")
    if isinstance(headers, dict):
        for key in [k for k in headers if k.lower() in _SENSITIVE_HEADERS]:
            headers[key] = "[Filtered]"

    for crumb in (event.get("breadcrumbs") or {}).get("values", []):
        data = crumb.get("data") or {}
        for key in [k for k in data if k.lower() in _SENSITIVE_HEADERS]:
            data[key] = "[Filtered]"
    return event


def init_sentry() -> bool:
    """Initialize the SDK; returns whether reporting is active."""
    if not settings.sentry_dsn:
        logger.debug("SENTRY_DSN not set, error reporting disabled")
        return False

    import sentry_sdk
    from sentry_sdk.integrations.asyncio import AsyncioIntegration
    from sentry_sdk.integrations.httpx import HttpxIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.app_env,
        traces_sample_rate=0.1 if settings.app_env == "production" else 1.0,
        send_default_pii=False,
        before_send=scrub_event,
        integrations=[AsyncioIntegration(), HttpxIntegration(), SqlalchemyIntegration()],
    )
    logger.info("Sentry initialized (env=%s)", settings.app_env)
    return True
