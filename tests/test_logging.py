import logging

from sugvoyage.config.settings import get_logging_config
from sugvoyage.core.logging import configure_logging


def test_level_override_applies_to_root_but_keeps_library_levels():
    try:
        configure_logging("debug")

        assert logging.getLogger().level == logging.DEBUG
        assert logging.getLogger("httpx").level == logging.WARNING
        assert get_logging_config()["root"]["level"] == "INFO"
    finally:
        configure_logging()
