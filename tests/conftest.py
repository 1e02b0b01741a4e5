"""
Shared pytest fixtures for the Tally test suite.

Usage in tests:
    def test_something(tally_factory):
        tally_factory.add_event("2025-01-15T09:00:00.000Z", command="help")
        service = tally_factory.create_service()

    def test_with_data(tally_env):
        # tally_env comes with the sample day already on disk
        stats = tally_env.create_service().get_daily_stats("2025-01-15")
"""

import pytest
from loguru import logger

from tests.factories import TallyTestFactory


@pytest.fixture
def tally_factory(tmp_path):
    """
    Empty TallyTestFactory backed by tmp_path.

    Services it creates are cleaned up after the test.
    """
    factory = TallyTestFactory(tmp_path)
    yield factory
    factory.close()


@pytest.fixture
def tally_env(tally_factory):
    """
    TallyTestFactory with the sample day (2025-01-15) written to disk.

    See TallyTestFactory.create_sample_day for the expected aggregates.
    """
    tally_factory.create_sample_day()
    return tally_factory


@pytest.fixture
def service(tally_factory):
    """Service over an empty directory with a fixed clock."""
    return tally_factory.create_service()


@pytest.fixture
def log_messages():
    """
    Capture loguru output as a list of "LEVEL message" strings.

    loguru does not go through the stdlib logging module, so caplog
    cannot see it.
    """
    messages = []
    handler_id = logger.add(lambda m: messages.append(f"{m.record['level'].name} {m.record['message']}"),
                            level="TRACE")
    yield messages
    logger.remove(handler_id)
