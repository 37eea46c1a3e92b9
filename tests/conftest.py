# tests/conftest.py
import logging
from unittest.mock import AsyncMock

import pytest

# ------------------------------------------------------------------------------
# 1. Global Configuration
# ------------------------------------------------------------------------------

@pytest.fixture(scope="session")
def anyio_backend():
    """
    Tells pytest to use 'asyncio' as the backend for anyio tests.
    batchsync is written against anyio, and this keeps httpx happy too.
    """
    return "asyncio"


@pytest.fixture(autouse=True)
def setup_test_logging(caplog):
    """
    Automatically captures logging at DEBUG level for every test.
    If a test fails, pytest will show the logs (the uploader logs every state transition).
    """
    caplog.set_level(logging.DEBUG)


# ------------------------------------------------------------------------------
# 2. Shared Transport Fixtures
# ------------------------------------------------------------------------------

@pytest.fixture
def scripted_transport():
    """
    A transport whose ``send`` replays the given responses (or raises the given
    exceptions) in order. Inspect ``transport.send.await_args_list`` for the requests.
    """

    def _make(*responses):
        transport = AsyncMock()
        transport.send.side_effect = list(responses)
        return transport

    return _make
