"""
Snowman Attribution - Open Request Payload
==========================================
Device metadata collection and the ``v1/open`` request body.
"""

import json
import logging
import platform
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from importlib import metadata as importlib_metadata
from typing import Any, Dict, Optional, Tuple

from core.config import AttributionConfig
from core.exceptions import PayloadSerializationException

logger = logging.getLogger(__name__)

HARDWARE_ID_TYPE = "vendor_id"


# =============================================================================
# DEVICE METADATA
# =============================================================================

@dataclass(frozen=True)
class DeviceInfo:
    """Device and app metadata included in every open request."""
    model: str
    os_version: Tuple[int, int, int]
    app_version: Optional[str] = None
    vendor_id: Optional[str] = None

    @property
    def os_version_string(self) -> str:
        major, minor, patch = self.os_version
        return f"{major}.{minor}.{patch}"


def parse_os_version(version: str) -> Tuple[int, int, int]:
    """Turn '17.0.1', '17.2' or '6.1.0-13-amd64' into a (major, minor, patch) triple."""
    numbers = [int(n) for n in re.findall(r"\d+", version)[:3]]
    while len(numbers) < 3:
        numbers.append(0)
    return numbers[0], numbers[1], numbers[2]


class DeviceInfoProvider(ABC):
    """Source of device identity, app version and OS version."""

    @abstractmethod
    def get_device_info(self) -> DeviceInfo:
        """Collect metadata. Called on a background worker thread."""
        pass


class StaticDeviceInfoProvider(DeviceInfoProvider):
    """Returns fixed metadata handed over by the host application."""

    def __init__(self, device_info: DeviceInfo):
        self.device_info = device_info

    def get_device_info(self) -> DeviceInfo:
        return self.device_info


class PlatformDeviceInfoProvider(DeviceInfoProvider):
    """
    Reads metadata from the running interpreter's platform.

    The app version comes from the installed distribution metadata of
    ``app_distribution`` when given; the vendor id is whatever the host
    passes in, there is no platform-wide equivalent.
    """

    def __init__(
        self,
        app_distribution: Optional[str] = None,
        vendor_id: Optional[str] = None
    ):
        self.app_distribution = app_distribution
        self.vendor_id = vendor_id

    def _app_version(self) -> Optional[str]:
        if not self.app_distribution:
            return None
        try:
            return importlib_metadata.version(self.app_distribution)
        except importlib_metadata.PackageNotFoundError:
            logger.debug(f"No installed metadata for {self.app_distribution}")
            return None

    def get_device_info(self) -> DeviceInfo:
        release = platform.mac_ver()[0] or platform.release()
        return DeviceInfo(
            model=platform.machine() or "unknown",
            os_version=parse_os_version(release),
            app_version=self._app_version(),
            vendor_id=self.vendor_id,
        )


# =============================================================================
# PAYLOAD
# =============================================================================

def build_open_payload(
    config: AttributionConfig,
    device: DeviceInfo,
    user_agent: Optional[str] = None,
    universal_link: Optional[str] = None,
    link_click_id: Optional[str] = None
) -> Dict[str, Any]:
    """
    Assemble the ``v1/open`` body.

    Optional fields are left out entirely when unavailable. A Universal
    Link takes precedence over a link click id; at most one is sent.
    """
    body: Dict[str, Any] = {
        "server_to_server": True,
        "os": config.os_name,
        "is_hardware_id_real": True,
        "ad_tracking_enabled": False,
        "branch_key": config.branch_key,
        "branch_secret": config.branch_secret,
    }

    if device.app_version is not None:
        body["app_version"] = device.app_version
    body["model"] = device.model
    if user_agent is not None:
        body["user_agent"] = user_agent
    body["os_version"] = device.os_version_string

    if device.vendor_id is not None:
        body["hardware_id"] = device.vendor_id
        body["hardware_id_type"] = HARDWARE_ID_TYPE
        body["ios_vendor_id"] = device.vendor_id

    if universal_link is not None:
        body["universal_link_url"] = universal_link
    elif link_click_id is not None:
        body["link_identifier"] = link_click_id

    return body


def serialize_payload(body: Dict[str, Any]) -> bytes:
    """Encode the body as JSON bytes."""
    try:
        return json.dumps(body, allow_nan=False).encode("utf-8")
    except (TypeError, ValueError) as e:
        raise PayloadSerializationException(cause=e)
