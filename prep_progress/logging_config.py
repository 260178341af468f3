"""Logging setup shared by every entry point that embeds the engine."""

import logging

from prep_progress.config import settings

DEV_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
JSON_FORMAT = '{"time":"%(asctime)s","level":"%(levelname)s","name":"%(name)s","message":"%(message)s"}'


def configure_logging(level: str | None = None, json_format: bool | None = None) -> None:
    """Configure root logging.

    Defaults follow ``settings``: human-readable lines in dev mode, one JSON
    object per line otherwise.
    """
    if json_format is None:
        json_format = not settings.dev_mode
    level_name = (level or settings.log_level).upper()

    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format=JSON_FORMAT if json_format else DEV_FORMAT,
        force=True,
    )
