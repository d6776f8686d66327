"""
Snowman Attribution - Payload Tests
"""

import json

import pytest
from unittest.mock import patch

from core.exceptions import PayloadSerializationException
from attribution.payload import (
    DeviceInfo,
    PlatformDeviceInfoProvider,
    StaticDeviceInfoProvider,
    build_open_payload,
    parse_os_version,
    serialize_payload,
)


class TestBuildOpenPayload:
    """Tests for the v1/open body."""

    def test_device_fields(self, config, device_info):
        body = build_open_payload(config, device_info)

        assert body["model"] == "iPhone14,2"
        assert body["app_version"] == "1.2.3"
        assert body["os_version"] == "17.0.1"
        assert body["hardware_id"] == "ABCD-1234"
        assert body["hardware_id_type"] == "vendor_id"
        assert body["ios_vendor_id"] == "ABCD-1234"

    def test_fixed_fields(self, config, device_info):
        body = build_open_payload(config, device_info)

        assert body["server_to_server"] is True
        assert body["os"] == "iOS"
        assert body["is_hardware_id_real"] is True
        assert body["ad_tracking_enabled"] is False
        assert body["branch_key"] == "key_test_123"
        assert body["branch_secret"] == "secret_test_456"

    def test_key_order(self, config, device_info):
        body = build_open_payload(
            config, device_info, user_agent="UA", link_click_id="1234"
        )

        assert list(body) == [
            "server_to_server", "os", "is_hardware_id_real", "ad_tracking_enabled",
            "branch_key", "branch_secret", "app_version", "model", "user_agent",
            "os_version", "hardware_id", "hardware_id_type", "ios_vendor_id",
            "link_identifier",
        ]

    def test_optional_fields_omitted(self, config):
        device = DeviceInfo(model="iPad13,1", os_version=(16, 4, 0))

        body = build_open_payload(config, device)

        for key in ("app_version", "user_agent", "hardware_id", "hardware_id_type",
                    "ios_vendor_id", "universal_link_url", "link_identifier"):
            assert key not in body
        assert body["os_version"] == "16.4.0"

    def test_user_agent_included(self, config, device_info):
        body = build_open_payload(config, device_info, user_agent="Mozilla/5.0")
        assert body["user_agent"] == "Mozilla/5.0"

    def test_universal_link_wins(self, config, device_info):
        body = build_open_payload(
            config,
            device_info,
            universal_link="https://snowman.app.link/abc",
            link_click_id="1234",
        )

        assert body["universal_link_url"] == "https://snowman.app.link/abc"
        assert "link_identifier" not in body

    def test_link_click_id_alone(self, config, device_info):
        body = build_open_payload(config, device_info, link_click_id="1234")

        assert body["link_identifier"] == "1234"
        assert "universal_link_url" not in body

    def test_os_name_from_config(self, config, device_info):
        config.os_name = "iPadOS"
        assert build_open_payload(config, device_info)["os"] == "iPadOS"


class TestSerializePayload:
    """Tests for JSON encoding."""

    def test_encodes_json(self, config, device_info):
        body = build_open_payload(config, device_info)
        assert json.loads(serialize_payload(body)) == body

    def test_unserializable_value(self):
        with pytest.raises(PayloadSerializationException) as exc_info:
            serialize_payload({"model": object()})

        assert isinstance(exc_info.value.cause, TypeError)

    def test_nan_rejected(self):
        with pytest.raises(PayloadSerializationException):
            serialize_payload({"value": float("nan")})


class TestDeviceInfo:
    """Tests for device metadata helpers."""

    @pytest.mark.parametrize("version,expected", [
        ("17.0.1", (17, 0, 1)),
        ("17.2", (17, 2, 0)),
        ("17", (17, 0, 0)),
        ("6.1.0-13-amd64", (6, 1, 0)),
        ("", (0, 0, 0)),
    ])
    def test_parse_os_version(self, version, expected):
        assert parse_os_version(version) == expected

    def test_static_provider(self, device_info):
        assert StaticDeviceInfoProvider(device_info).get_device_info() is device_info

    def test_platform_provider(self):
        provider = PlatformDeviceInfoProvider(vendor_id="ABCD-1234")

        with patch("attribution.payload.platform") as mock_platform:
            mock_platform.mac_ver.return_value = ("14.2.1", ("", "", ""), "arm64")
            mock_platform.machine.return_value = "arm64"
            info = provider.get_device_info()

        assert info.model == "arm64"
        assert info.os_version == (14, 2, 1)
        assert info.vendor_id == "ABCD-1234"
        assert info.app_version is None

    def test_platform_provider_unknown_distribution(self):
        provider = PlatformDeviceInfoProvider(app_distribution="no-such-distribution-xyz")
        assert provider.get_device_info().app_version is None
