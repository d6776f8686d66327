"""
Snowman Attribution - Open Attribution
"""
from .link_context import LinkContext, TriggerSource, extract_link_click_id
from .open_requester import (
    OpenAttributionRequester,
    OpenResult,
    OpenStatus,
    RequesterState,
)
from .payload import (
    DeviceInfo,
    DeviceInfoProvider,
    PlatformDeviceInfoProvider,
    StaticDeviceInfoProvider,
    build_open_payload,
)
from .session import AttributionSession, LAUNCH_TRIGGER_DELAY
from .user_agent import (
    CallbackUserAgentResolver,
    StaticUserAgentResolver,
    UserAgentResolver,
)

__all__ = [
    "LinkContext", "TriggerSource", "extract_link_click_id",
    "OpenAttributionRequester", "OpenResult", "OpenStatus", "RequesterState",
    "DeviceInfo", "DeviceInfoProvider", "PlatformDeviceInfoProvider",
    "StaticDeviceInfoProvider", "build_open_payload",
    "AttributionSession", "LAUNCH_TRIGGER_DELAY",
    "CallbackUserAgentResolver", "StaticUserAgentResolver", "UserAgentResolver",
]
__version__ = "1.0.0"
