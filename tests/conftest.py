"""Shared pytest fixtures."""

import logging
from collections.abc import Iterator

import pytest
from fakes import FakeClock, FakeCloudFacade, healthy_task


@pytest.fixture
def facade() -> FakeCloudFacade:
    """Return a fake facade for a healthy two-task service."""
    fake = FakeCloudFacade()
    fake.tasks = [healthy_task("aaaaaaaa1111"), healthy_task("bbbbbbbb2222")]
    return fake


@pytest.fixture
def clock() -> FakeClock:
    """Return a fake monotonic clock."""
    return FakeClock()


@pytest.fixture(autouse=True)
def reset_root_logging() -> Iterator[None]:
    """Close file handlers installed by CLI commands."""
    yield
    root = logging.getLogger()
    for handler in list(root.handlers):
        if isinstance(handler, logging.FileHandler):
            root.removeHandler(handler)
            handler.close()
