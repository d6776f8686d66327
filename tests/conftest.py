"""
Snowman Attribution - Pytest Configuration
Global fixtures and configuration for tests.
"""

import json
from typing import Any, Dict, List, Optional

import httpx
import pytest

from core.config import AttributionConfig
from attribution.link_context import LinkContext
from attribution.open_requester import OpenAttributionRequester
from attribution.payload import DeviceInfo, StaticDeviceInfoProvider
from attribution.user_agent import StaticUserAgentResolver


# =============================================================================
# HTTP TEST DOUBLE
# =============================================================================

class RecordingTransport(httpx.MockTransport):
    """MockTransport that records every request and replays a canned response."""

    def __init__(
        self,
        status_code: int = 200,
        json_body: Any = None,
        content: Optional[bytes] = None,
        error: Optional[Exception] = None
    ):
        self.requests: List[httpx.Request] = []
        self.status_code = status_code
        self.json_body = json_body
        self.content = content
        self.error = error
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        if self.content is not None:
            return httpx.Response(self.status_code, content=self.content)
        return httpx.Response(self.status_code, json=self.json_body)

    @property
    def bodies(self) -> List[Dict[str, Any]]:
        return [json.loads(r.content) for r in self.requests]


# =============================================================================
# SAMPLE DATA FIXTURES
# =============================================================================

@pytest.fixture
def config() -> AttributionConfig:
    """Test credentials."""
    return AttributionConfig(
        branch_key="key_test_123",
        branch_secret="secret_test_456",
    )


@pytest.fixture
def device_info() -> DeviceInfo:
    """Sample device metadata."""
    return DeviceInfo(
        model="iPhone14,2",
        os_version=(17, 0, 1),
        app_version="1.2.3",
        vendor_id="ABCD-1234",
    )


@pytest.fixture
def referring_params() -> Dict[str, Any]:
    """Sample v1/open response body."""
    return {
        "session_id": "1234567890",
        "identity_id": "987654321",
        "link": "https://snowman.app.link?%24identity_id=987654321",
        "data": json.dumps({
            "+clicked_branch_link": True,
            "+is_first_session": False,
            "$canonical_identifier": "snowman/42",
        }),
    }


# =============================================================================
# COMPONENT FIXTURES
# =============================================================================

@pytest.fixture
def transport(referring_params) -> RecordingTransport:
    return RecordingTransport(json_body=referring_params)


@pytest.fixture
def make_requester(config, device_info):
    """Factory for requesters wired to a recording transport."""
    def _make(
        transport: RecordingTransport,
        user_agent: Optional[str] = "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0_1 like Mac OS X)",
        context: Optional[LinkContext] = None,
        **kwargs
    ) -> OpenAttributionRequester:
        return OpenAttributionRequester(
            config,
            context=context,
            user_agent_resolver=kwargs.pop("user_agent_resolver", StaticUserAgentResolver(user_agent)),
            device_info_provider=kwargs.pop("device_info_provider", StaticDeviceInfoProvider(device_info)),
            http_client=httpx.AsyncClient(transport=transport),
            **kwargs
        )
    return _make


@pytest.fixture
def make_transport():
    """Factory for transports with a custom canned response."""
    return RecordingTransport
