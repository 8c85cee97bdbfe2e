"""
Test configuration and fixtures for Akamai MCP
"""

import copy
import inspect
import re
import tempfile
from pathlib import Path
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from akamai_mcp.bulk import BulkExecutor, OperationStore, OperationTracker
from akamai_mcp.config import BulkSettings, ConfigManager
from akamai_mcp.dns import DNSBulkManager
from akamai_mcp.exceptions import AkamaiAPIError
from akamai_mcp.properties import BulkPropertyManager


class FakeAkamaiClient:
    """Stand-in for AkamaiClient answering requests from registered routes.

    A route handler is a value (returned as a deep copy), an exception
    instance (raised), or a callable taking the recorded call. Routes added
    later win over earlier ones.
    """

    def __init__(self):
        self.routes = []
        self.calls = []

    def route(self, method, pattern, handler):
        self.routes.append((method.upper(), re.compile(f"^{pattern}$"), handler))

    async def request(
        self, path, method="GET", headers=None, query_params=None, body=None
    ):
        call = SimpleNamespace(
            path=path,
            method=method.upper(),
            headers=headers,
            query_params=query_params,
            body=copy.deepcopy(body),
        )
        self.calls.append(call)

        for route_method, pattern, handler in reversed(self.routes):
            if route_method != call.method or not pattern.match(path):
                continue
            if isinstance(handler, BaseException):
                raise handler
            if callable(handler):
                result = handler(call)
                if inspect.isawaitable(result):
                    result = await result
                return result
            return copy.deepcopy(handler)

        raise AkamaiAPIError(404, title=f"No route for {call.method} {path}")

    def calls_to(self, method, pattern):
        regex = re.compile(f"^{pattern}$")
        return [
            c for c in self.calls if c.method == method.upper() and regex.match(c.path)
        ]


def property_response(
    property_id="prp_1",
    name="example.com",
    latest=3,
    staging=None,
    production=None,
):
    """PAPI GET property response body"""
    return {
        "properties": {
            "items": [
                {
                    "propertyId": property_id,
                    "propertyName": name,
                    "contractId": "ctr_1-ABC",
                    "groupId": "grp_1",
                    "productId": "prd_Fresca",
                    "latestVersion": latest,
                    "stagingVersion": staging,
                    "productionVersion": production,
                    "etag": "etag-1",
                }
            ]
        }
    }


@pytest.fixture
def temp_config_dir():
    """Create temporary config directory"""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove environment overrides that would leak into config tests"""
    for name in ("EDGERC_PATH", "AKAMAI_CUSTOMER", "AKAMAI_ACCOUNT_SWITCH_KEY"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_config_manager(temp_config_dir, clean_env):
    """ConfigManager reading from a temp home directory"""
    with patch("akamai_mcp.config.Path.home") as mock_home:
        mock_home.return_value = temp_config_dir
        yield ConfigManager()


@pytest.fixture
def fake_client():
    return FakeAkamaiClient()


@pytest.fixture
def sample_rules():
    """Minimal PAPI rule tree"""
    return {
        "name": "default",
        "options": {"is_secure": True},
        "behaviors": [
            {"name": "origin", "options": {"hostname": "origin.example.com"}},
            {"name": "caching", "options": {"behavior": "MAX_AGE", "ttl": "1d"}},
        ],
        "children": [
            {"name": "Static", "behaviors": [], "criteria": [], "children": []}
        ],
    }


@pytest.fixture
def bulk_settings():
    """Settings with a short activation poll interval"""
    return BulkSettings(activation_poll_interval=0.01, activation_max_wait_ms=200)


@pytest.fixture
def tracker():
    return OperationTracker(OperationStore())


@pytest.fixture
def property_manager(tracker, bulk_settings):
    return BulkPropertyManager(tracker, BulkExecutor(), bulk_settings)


@pytest.fixture
def dns_manager(tracker):
    return DNSBulkManager(tracker, BulkExecutor())


@pytest.fixture
def make_property():
    """Factory for PAPI property responses"""
    return property_response
