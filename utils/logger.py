"""Logfire setup for the application."""

import logfire

from logging import basicConfig, INFO

from utils.config import Settings


def configure_logging(settings: Settings) -> logfire.Logfire:
    """Configure logfire once and return the handle passed down to every component.

    Standard library loggers (uvicorn, pymongo, ...) are routed through logfire as well.

    Args:
        settings (Settings): Application settings.

    Returns:
        logfire.Logfire: The logging handle tagged with the application name.
    """
    logfire.configure(
        token=settings.LOGFIRE_WRITE_TOKEN,
        send_to_logfire="if-token-present",
        service_name=settings.APP_NAME,
        console=None if settings.LOG_TO_CONSOLE else False,
    )
    basicConfig(handlers=[logfire.LogfireLoggingHandler()], level=INFO)

    return get_logfire(settings.APP_NAME)


def get_logfire(name: str = "gatekeeper") -> logfire.Logfire:
    """Get a logfire handle tagged with `name`."""
    return logfire.with_settings(tags=[name])
