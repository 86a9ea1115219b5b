"""Shared test fixtures."""

import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """CLI tests install a non-propagating handler; undo it so caplog sees records."""
    yield
    logger = logging.getLogger("dirmirror")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def source_and_destination(tmp_path):
    """Paths for a source and a destination root (not created)."""
    return tmp_path / "source", tmp_path / "destination"
