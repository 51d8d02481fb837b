import logging
import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config import ConfigurationManager  # noqa: E402
from invoice_totals.utils.logger import APP_LOGGER_NAME  # noqa: E402


@pytest.fixture(autouse=True)
def fresh_config():
    """Each test starts from settings.yaml, whatever the previous one overrode."""
    ConfigurationManager.reset()
    yield ConfigurationManager()
    ConfigurationManager.reset()


@pytest.fixture(autouse=True)
def detach_log_handlers():
    """Handlers installed by the CLI point at streams that die with the test."""
    yield
    app_logger = logging.getLogger(APP_LOGGER_NAME)
    for handler in list(app_logger.handlers):
        handler.close()
        app_logger.removeHandler(handler)
    app_logger.propagate = True
