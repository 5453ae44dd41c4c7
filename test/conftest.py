"""Pytest configuration and fixtures

Provides shared fixtures for all tests: a small adapter roster/catalog, a
stub adapter server and helpers for building batches.
"""

import json
import sys
from pathlib import Path

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from loadgen.core.adapters import AdapterConfig, parse_adapter_config
from loadgen.fixtures.stub_adapter_server import StubAdapterServer


SAMPLE_ADAPTERS = {
    "group_count": 2,
    "adapters": [
        {"name": "foo", "seconds_per_call": 1},
        {"name": "bar", "seconds_per_call": 1},
        {"name": "baz", "seconds_per_call": 3},
    ],
    "http_payloads": {
        "foo": [
            {"name": "one", "method": "POST", "data": {"id": "1", "data": {"from": "ETH"}}},
            {"name": "two", "method": "POST", "data": {"id": "2", "data": {"from": "BTC"}}},
        ],
        "bar": [
            {"name": "one", "method": "POST", "data": {"id": "1", "data": {"from": "LINK"}}},
        ],
        "baz": [
            {"name": "quote", "method": "GET", "data": None},
        ],
    },
    "ws_payloads": [
        {"name": "ws-eth", "method": "POST", "data": "{\"data\": {\"from\": \"ETH\", \"to\": \"USD\"}}"},
    ],
}


@pytest.fixture
def adapters_dict():
    """A fresh, mutable copy of the sample adapters document."""
    return json.loads(json.dumps(SAMPLE_ADAPTERS))


@pytest.fixture
def adapter_config(adapters_dict) -> AdapterConfig:
    return parse_adapter_config(adapters_dict)


@pytest.fixture
def adapters_file(tmp_path, adapters_dict) -> Path:
    path = tmp_path / "adapters.json"
    path.write_text(json.dumps(adapters_dict), encoding="utf-8")
    return path


@pytest.fixture
def stub_adapter():
    """A running stub adapter answering 200 to everything."""
    with StubAdapterServer() as server:
        yield server
