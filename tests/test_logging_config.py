"""Tests for logging_config.py."""

import logging

import pytest
from pythonjsonlogger.json import JsonFormatter

from bootstab.logging_config import configure_logging


@pytest.fixture
def package_logger():
    logger = logging.getLogger("bootstab")
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers = handlers
    logger.setLevel(level)


def test_plain_format(package_logger):
    configure_logging(level=logging.DEBUG, force_format="plain")
    assert package_logger.level == logging.DEBUG
    assert len(package_logger.handlers) == 1
    assert not isinstance(package_logger.handlers[0].formatter, JsonFormatter)


def test_json_format(package_logger):
    configure_logging(force_format="json")
    assert isinstance(package_logger.handlers[0].formatter, JsonFormatter)


def test_env_var(package_logger, monkeypatch):
    monkeypatch.setenv("BOOTSTAB_LOG_FORMAT", "JSON")
    configure_logging()
    assert isinstance(package_logger.handlers[0].formatter, JsonFormatter)


def test_reconfigure_does_not_duplicate_handlers(package_logger):
    configure_logging(force_format="plain")
    configure_logging(force_format="plain")
    assert len(package_logger.handlers) == 1


def test_unknown_format(package_logger):
    with pytest.raises(ValueError):
        configure_logging(force_format="xml")
