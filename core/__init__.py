"""
Snowman Attribution - Core
"""
from .config import AttributionConfig, DEFAULT_OPEN_URL
from .exceptions import (
    AttributionException,
    ConfigurationException,
    HTTPStatusException,
    InvalidLinkException,
    MissingConfigException,
    PayloadSerializationException,
    ResponseDecodeException,
    TransportException,
)

__all__ = [
    "AttributionConfig", "DEFAULT_OPEN_URL",
    "AttributionException", "ConfigurationException", "HTTPStatusException",
    "InvalidLinkException", "MissingConfigException",
    "PayloadSerializationException", "ResponseDecodeException",
    "TransportException",
]
