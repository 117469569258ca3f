"""Logging configuration: the `aria` level follows the argument or the
environment even when the host already installed root handlers."""

from __future__ import annotations

import logging

import pytest

from aria.logging_setup import LOG_LEVEL_ENV, configure_logging


@pytest.fixture
def aria_logger():
    logger = logging.getLogger("aria")
    previous = logger.level
    yield logger
    logger.setLevel(previous)


def test_level_from_environment(monkeypatch, aria_logger):
    monkeypatch.setenv(LOG_LEVEL_ENV, "debug")

    configure_logging()

    assert aria_logger.level == logging.DEBUG


def test_explicit_level_wins_over_environment(monkeypatch, aria_logger):
    monkeypatch.setenv(LOG_LEVEL_ENV, "debug")

    configure_logging("warning")

    assert aria_logger.level == logging.WARNING


def test_existing_root_handlers_are_not_duplicated(aria_logger):
    root = logging.getLogger()
    handler = logging.NullHandler()
    root.addHandler(handler)
    try:
        before = list(root.handlers)
        configure_logging("info")
        assert root.handlers == before
    finally:
        root.removeHandler(handler)
