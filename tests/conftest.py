"""
Pytest configuration for Relay Service tests.
"""
import os

import pytest

# Set test environment variables before the service modules are imported
os.environ["BROKER_ADAPTER"] = "memory"
os.environ["DEBUG"] = "true"
os.environ["RELAY_TOPICS"] = '[">"]'
os.environ["STREAM_HEARTBEAT_INTERVAL"] = "1"

from relay_service.adapters.memory_adapter import MemoryAdapter


@pytest.fixture
async def memory_adapter():
    """Create and connect a memory adapter for testing."""
    adapter = MemoryAdapter()
    await adapter.connect()
    yield adapter
    await adapter.disconnect()
