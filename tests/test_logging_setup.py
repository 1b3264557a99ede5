from __future__ import annotations

import logging

from nback_trainer.logging_setup import configure_logging, level_from_env


def test_level_from_env(monkeypatch) -> None:
    monkeypatch.delenv("NBACK_LOG_LEVEL", raising=False)
    assert level_from_env() == logging.WARNING

    monkeypatch.setenv("NBACK_LOG_LEVEL", "debug")
    assert level_from_env() == logging.DEBUG

    monkeypatch.setenv("NBACK_LOG_LEVEL", "15")
    assert level_from_env() == 15

    monkeypatch.setenv("NBACK_LOG_LEVEL", "chatty")
    assert level_from_env(logging.INFO) == logging.INFO


def test_configure_logging_installs_a_single_handler() -> None:
    name = "nback_trainer_test_logger"
    logger = configure_logging(logging.INFO, name=name)
    configure_logging(logging.DEBUG, name=name)

    assert len(logger.handlers) == 1
    assert logger.level == logging.DEBUG
    assert not logger.propagate
