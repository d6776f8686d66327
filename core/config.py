"""
Snowman Attribution - Configuration
Credentials and endpoint settings injected at construction time.
"""

import os
from dataclasses import dataclass

from .exceptions import ConfigurationException, MissingConfigException

DEFAULT_OPEN_URL = "https://api2.branch.io/v1/open"


@dataclass
class AttributionConfig:
    """Configuration for the open attribution client."""

    # Credentials
    branch_key: str = ""
    branch_secret: str = ""

    # Endpoint
    api_url: str = DEFAULT_OPEN_URL

    # Payload
    os_name: str = "iOS"

    # User agent resolution
    user_agent_timeout: float = 5.0

    # Logging
    log_level: str = "INFO"
    log_format: str = "json"  # json, console

    @classmethod
    def from_env(cls) -> 'AttributionConfig':
        """Create config from environment variables."""
        return cls(
            branch_key=os.getenv("BRANCH_KEY", ""),
            branch_secret=os.getenv("BRANCH_SECRET", ""),
            api_url=os.getenv("BRANCH_API_URL", DEFAULT_OPEN_URL),
            os_name=os.getenv("ATTRIBUTION_OS_NAME", "iOS"),
            user_agent_timeout=float(os.getenv("ATTRIBUTION_USER_AGENT_TIMEOUT", "5.0")),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format=os.getenv("LOG_FORMAT", "json"),
        )

    def validate(self) -> 'AttributionConfig':
        """Raise if required settings are missing or malformed."""
        if not self.branch_key:
            raise MissingConfigException("BRANCH_KEY")
        if not self.branch_secret:
            raise MissingConfigException("BRANCH_SECRET")
        if not self.api_url.startswith(("http://", "https://")):
            raise ConfigurationException(
                f"Attribution endpoint must be an http(s) URL, got '{self.api_url}'",
                config_key="BRANCH_API_URL",
            )
        if self.user_agent_timeout <= 0:
            raise ConfigurationException(
                "User agent timeout must be positive",
                config_key="ATTRIBUTION_USER_AGENT_TIMEOUT",
            )
        return self

    @property
    def json_logs(self) -> bool:
        return self.log_format.lower() != "console"

    def __repr__(self) -> str:
        masked = "***masked***" if self.branch_secret else "''"
        return (
            f"AttributionConfig(branch_key={self.branch_key!r}, branch_secret={masked}, "
            f"api_url={self.api_url!r}, os_name={self.os_name!r})"
        )
