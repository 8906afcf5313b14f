"""Logging configuration module."""

from __future__ import annotations

import logging

from segmentation_sdk.config.settings import get_settings


def configure_logging() -> None:
    """Configure the root logger for scripts embedding the client.

    The library itself only emits records; it never installs handlers.
    """

    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    logging.getLogger("httpx").setLevel(logging.WARNING)
