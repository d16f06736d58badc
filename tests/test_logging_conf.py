import logging

from planboard.logging_conf import NOISY_LOGGERS, configure_logging


def test_configure_logging_replaces_handlers():
    configure_logging("DEBUG")
    configure_logging("DEBUG")

    root = logging.getLogger()
    assert root.level == logging.DEBUG
    assert len(root.handlers) == 1
    for name in NOISY_LOGGERS:
        assert logging.getLogger(name).level == logging.WARNING


def test_configure_logging_falls_back_to_info():
    configure_logging("chatty")
    assert logging.getLogger().level == logging.INFO
