import logging
import os
import sys

import pytest

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from config import CONFIG_ENV_VAR, ConfigurationManager, get_config  # noqa: E402
from invoice_totals.utils.logger import get_logger, setup_logger  # noqa: E402


def test_defaults_from_settings_file():
    assert get_config("reconciliation.tolerance_cents") == 5
    assert get_config("vendor.min_confidence") == 50
    assert get_config("acquisition.ocr.page_timeout") == 60
    assert get_config("totals.fallback.min_confidence") == 50


def test_missing_keys_return_default():
    assert get_config("does.not.exist", 7) == 7
    assert get_config("reconciliation.tolerance_cents.deeper") is None


def test_singleton_and_in_memory_override():
    first = ConfigurationManager()
    first.set("reconciliation.tolerance_cents", 10)

    assert ConfigurationManager() is first
    assert get_config("reconciliation.tolerance_cents") == 10

    first.reload()
    assert get_config("reconciliation.tolerance_cents") == 5


def test_custom_config_file(tmp_path):
    custom = tmp_path / "settings.yaml"
    custom.write_text("reconciliation:\n  tolerance_cents: 25\n", encoding="utf-8")

    ConfigurationManager.reset()
    ConfigurationManager(str(custom))

    assert get_config("reconciliation.tolerance_cents") == 25
    assert get_config("vendor.min_confidence", 50) == 50


def test_config_file_from_environment(tmp_path, monkeypatch):
    custom = tmp_path / "env.yaml"
    custom.write_text("vendor:\n  min_confidence: 70\n", encoding="utf-8")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(custom))

    ConfigurationManager.reset()

    assert get_config("vendor.min_confidence") == 70
    assert ConfigurationManager().config_path == custom


def test_missing_config_file(tmp_path):
    ConfigurationManager.reset()
    with pytest.raises(FileNotFoundError):
        ConfigurationManager(str(tmp_path / "nope.yaml"))


def test_module_loggers_live_under_the_app_logger(tmp_path):
    log_file = tmp_path / "logs" / "engine.log"
    app_logger = setup_logger(level="DEBUG", log_file=str(log_file), colorize=False)

    get_logger("invoice_totals.totals.engine").warning("scan finished")
    for handler in app_logger.handlers:
        handler.flush()

    assert get_logger("scripts.debug").name == "invoice_totals.scripts.debug"
    assert app_logger.level == logging.DEBUG
    assert "scan finished" in log_file.read_text(encoding="utf-8")

def test_setup_quiets_pdf_library_loggers():
    setup_logger(level="DEBUG", colorize=False)

    assert logging.getLogger("pdfminer").level == logging.WARNING
    assert logging.getLogger("PIL").level == logging.WARNING
