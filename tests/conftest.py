from __future__ import annotations

import logging

import pytest

from tests._fixtures.fakes import FakeGitHub


@pytest.fixture(autouse=True)
def _reset_logging():
    """Undo CLI logging configuration so caplog sees every record."""
    yield
    logger = logging.getLogger("readmebot")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def fake_github() -> FakeGitHub:
    """Provide an in-memory repository with a small README and one PR."""
    return FakeGitHub()
