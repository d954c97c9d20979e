"""
Logging setup for the API server and the CLI.

Handlers, formats and the per-library levels (`uvicorn` at INFO, `httpx` at WARNING so a
poll client does not log every catalog fetch) live in `config/logging.yaml`. Only the
root/handler level is taken from settings (`app.log_level`, env `SUGVOYAGE_LOG_LEVEL`).
"""

from __future__ import annotations

import copy
import logging.config

from sugvoyage.config.settings import get_logging_config, get_settings


def configure_logging(level: str | None = None) -> None:
    """Apply the packaged dictConfig; `level` overrides `app.log_level` when given."""
    # dictConfig rewrites the mapping it is given; keep the cached copy pristine.
    config = copy.deepcopy(get_logging_config())
    level = (level or get_settings().app.log_level).upper()

    config.setdefault("root", {})["level"] = level
    for handler in config.get("handlers", {}).values():
        handler["level"] = level

    logging.config.dictConfig(config)
