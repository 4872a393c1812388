"""Pytest configuration and fixtures for gateway bridge tests."""
from __future__ import annotations

import os
from typing import Generator
from unittest.mock import MagicMock

import pytest
import respx

# Set test environment variables before importing modules
os.environ.setdefault("IBKR_BASE_URL", "http://gateway.test/v1/api")
os.environ.setdefault("IBKR_ACCOUNT_ID", "DU1234567")

from ibkr_bridge.config import Settings, reload_settings
from ibkr_bridge.gateway.client import GatewayClient
from ibkr_bridge.orders import InstrumentResolver, OrderBuilder

BASE_URL = "http://gateway.test/v1/api"
ACCOUNT_ID = "DU1234567"


@pytest.fixture
def gateway() -> Generator[respx.MockRouter, None, None]:
    """Mock the gateway's REST API; unmatched requests fail the test."""
    with respx.mock(base_url=BASE_URL, assert_all_called=False) as router:
        yield router


@pytest.fixture
def client() -> Generator[GatewayClient, None, None]:
    """Create a GatewayClient pointed at the mocked gateway."""
    c = GatewayClient(base_url=BASE_URL + "/", timeout=5.0)
    yield c
    c.close()


@pytest.fixture
def mock_resolver() -> MagicMock:
    """Create a resolver stub that always answers conid 265598."""
    resolver = MagicMock(spec=InstrumentResolver)
    resolver.resolve.return_value = 265598
    return resolver


@pytest.fixture
def builder(mock_resolver: MagicMock) -> OrderBuilder:
    """Create an OrderBuilder that never touches the network."""
    return OrderBuilder(resolver=mock_resolver, account_id=ACCOUNT_ID)


@pytest.fixture
def aapl_search() -> list[dict]:
    """A typical stock search response with two candidates."""
    return [
        {"conid": "265598", "companyName": "APPLE INC", "symbol": "AAPL", "description": "NASDAQ"},
        {"conid": "38708077", "companyName": "APPLE INC", "symbol": "AAPL", "description": "MEXI"},
    ]


@pytest.fixture
def test_settings() -> Settings:
    """Create test settings from the test environment."""
    return reload_settings()
