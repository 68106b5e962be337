"""Tests for logging setup."""

import logging

import pytest
import structlog

from stakeclient.logging import get_logger, setup_logging


@pytest.fixture(autouse=True)
def _restore_logging():
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler.formatter, structlog.stdlib.ProcessorFormatter):
            root.removeHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()


class TestSetupLogging:
    def test_sets_root_level(self):
        setup_logging("WARNING")
        assert logging.getLogger().level == logging.WARNING

    def test_unknown_level_falls_back_to_info(self):
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_web3_is_capped_at_info(self):
        setup_logging("DEBUG")
        assert logging.getLogger("web3").level == logging.INFO

    def test_json_output(self, capsys):
        setup_logging("INFO", "json")

        get_logger("stakeclient.test").info("stake_requested", amount="10")

        err = capsys.readouterr().err
        assert '"event": "stake_requested"' in err
        assert '"amount": "10"' in err
