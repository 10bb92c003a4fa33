import logging

from huntclient.logging_config import configure_logging


def test_package_follows_level_and_libraries_stay_quiet():
    configure_logging("debug")
    try:
        assert logging.getLogger("huntclient").level == logging.DEBUG
        assert logging.getLogger("websockets").level == logging.WARNING
        assert logging.getLogger("httpx").level == logging.WARNING
    finally:
        configure_logging("WARNING")
