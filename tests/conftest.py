"""
Pytest configuration for the Oblique Strategies MCP Server tests.
"""

from __future__ import annotations

import random

import pytest

from mcp_oblique.routing import ToolRegistry
from mcp_oblique.storage.kv import MemoryKVStore
from mcp_oblique.tools import register_strategy_tools

# Configure pytest-asyncio mode
pytest_plugins = ["pytest_asyncio"]


class FakeClock:
    """Manually advanced clock for TTL tests."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    """A fake clock starting at a fixed Unix time."""
    return FakeClock()


@pytest.fixture
def store(clock: FakeClock) -> MemoryKVStore:
    """A fresh in-memory KV store driven by the fake clock."""
    return MemoryKVStore(clock=clock)


@pytest.fixture
def registry(store: MemoryKVStore) -> ToolRegistry:
    """A registry holding the strategy tools bound to the test store."""
    return register_strategy_tools(ToolRegistry(), store, rng=random.Random(42))
