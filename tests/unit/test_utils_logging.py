"""Tests for logger construction and logging setup."""

import logging

import pytest

import logging_config
from pair_arbitrage.utils import DEFAULT_HANDLER_NAME, get_logger


@pytest.fixture
def restore_logging():
    root = logging.getLogger()
    saved_handlers = list(root.handlers)
    saved_level = root.level
    yield
    root.handlers[:] = saved_handlers
    root.setLevel(saved_level)


def test_get_logger_basic():
    """Test basic get_logger functionality."""
    logger = get_logger(__name__)
    assert isinstance(logger, logging.Logger)
    assert logger.name == __name__


def test_get_logger_with_level():
    """Test get_logger with custom level."""
    logger = get_logger(__name__ + ".test1", level=logging.DEBUG)
    assert logger.level == logging.DEBUG


def test_get_logger_keeps_existing_level():
    logging.getLogger(__name__ + ".test_keep").setLevel(logging.ERROR)
    logger = get_logger(__name__ + ".test_keep", level=logging.DEBUG)
    assert logger.level == logging.ERROR


def test_get_logger_with_extra():
    """Test get_logger with extra context."""
    logger = get_logger(__name__ + ".test2", extra={"venue": "Pangolin"})
    assert isinstance(logger, logging.LoggerAdapter)
    assert logger.extra == {"extra_venue": "Pangolin"}


def test_fallback_handler_only_without_root_handlers(restore_logging):
    root = logging.getLogger()
    root.handlers[:] = []

    logger = get_logger(__name__ + ".fallback")

    assert [h.get_name() for h in logger.handlers] == [DEFAULT_HANDLER_NAME]


def test_setup_strips_fallback_handlers(restore_logging):
    root = logging.getLogger()
    root.handlers[:] = []
    module_logger = get_logger("pair_arbitrage.test_setup_module", level=logging.DEBUG)
    assert module_logger.handlers

    logging_config.setup(level=logging.WARNING)

    assert module_logger.handlers == []
    assert module_logger.level == logging.NOTSET
    assert logging.getLogger("pair_arbitrage").level == logging.WARNING
    assert logging.getLogger("web3").level == logging.WARNING
    assert len(root.handlers) == 1


def test_setup_debug_enables_web3(restore_logging):
    logging_config.setup_debug()
    assert logging.getLogger("web3").level == logging.DEBUG
    assert logging.getLogger("dex").level == logging.DEBUG
