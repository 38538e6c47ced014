import logging

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from authcore.main.config import config
from loggers import get_logger, redact_tokens

logger = get_logger(__name__)

_sentry_initialized = False


def scrub_event(event: dict, hint: dict) -> dict:
    """Mask signed tokens and session cookies before an event leaves the process."""
    request = event.get("request") or {}
    if request.get("cookies"):
        request["cookies"] = {name: "***" for name in request["cookies"]}
    headers = request.get("headers") or {}
    for name in list(headers):
        if name.lower() in {"authorization", "cookie"}:
            headers[name] = "***"
    for breadcrumb in (event.get("breadcrumbs") or {}).get("values", []):
        if isinstance(breadcrumb.get("message"), str):
            breadcrumb["message"] = redact_tokens(breadcrumb["message"])
    return event


def init_sentry() -> None:
    """
    Initialize the Sentry client once using environment variables.
    """
    global _sentry_initialized

    if _sentry_initialized:
        return

    if config.app.DEBUG or config.app.TESTING:
        logger.info("DEBUG/TESTING enabled. Skipping Sentry initialization.")
        return

    if not config.sentry.SENTRY_ENABLED or not config.sentry.SENTRY_DSN:
        logger.info("Sentry disabled or DSN empty. Skipping Sentry initialization.")
        return

    sentry_sdk.init(
        dsn=config.sentry.SENTRY_DSN,
        environment=config.sentry.SENTRY_ENV,
        release=config.app.VERSION,
        send_default_pii=False,
        before_send=scrub_event,
        integrations=[
            LoggingIntegration(
                level=logging.INFO,  # breadcrumbs from INFO and up
                event_level=logging.CRITICAL,
            ),
        ],
    )
    _sentry_initialized = True
    logger.info("Sentry initialized.")
