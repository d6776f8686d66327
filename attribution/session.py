"""
Snowman Attribution - Session
=============================
Process-wide attribution state, owned by whatever drives the app lifecycle.

Lifecycle notifications map one to one onto the open triggers:

    did_finish_launching   -> delayed launch trigger (fixed 0.5s)
    continue_user_activity -> Universal Link trigger
    open_url               -> URI-scheme trigger
    did_enter_background   -> gate reset
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from core.config import AttributionConfig

from .link_context import LinkContext, TriggerSource
from .open_requester import OpenAttributionRequester, OpenObserver
from .payload import DeviceInfoProvider
from .user_agent import CallbackUserAgentResolver, Completion, UserAgentResolver

logger = logging.getLogger(__name__)

# Lets app launch complete before the open request starts
LAUNCH_TRIGGER_DELAY = 0.5


class AttributionSession:
    """
    One instance per process, created explicitly at startup.

    Usage:
        session = AttributionSession(AttributionConfig.from_env().validate())
        session.did_finish_launching(handler=print)
        ...
        session.open_url("snowman://open?link_click_id=1234")
        session.did_enter_background()

    Pass ``evaluate_user_agent`` to read the user agent from a web component;
    it is wrapped in a ``CallbackUserAgentResolver`` bounded by
    ``config.user_agent_timeout``. An explicit ``user_agent_resolver`` wins.
    """

    def __init__(
        self,
        config: AttributionConfig,
        user_agent_resolver: Optional[UserAgentResolver] = None,
        device_info_provider: Optional[DeviceInfoProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        evaluate_user_agent: Optional[Callable[[Completion], None]] = None
    ):
        self.config = config
        self.context = LinkContext()

        if user_agent_resolver is None and evaluate_user_agent is not None:
            user_agent_resolver = CallbackUserAgentResolver(
                evaluate_user_agent, timeout=config.user_agent_timeout
            )

        self.requester = OpenAttributionRequester(
            config,
            context=self.context,
            user_agent_resolver=user_agent_resolver,
            device_info_provider=device_info_provider,
            http_client=http_client,
        )
        self._launch_handle: Optional[asyncio.TimerHandle] = None

    @classmethod
    def from_env(cls, **kwargs) -> 'AttributionSession':
        return cls(AttributionConfig.from_env().validate(), **kwargs)

    @property
    def latest_referring_params(self) -> Optional[Dict[str, Any]]:
        return self.requester.latest_referring_params

    def on_open(self, handler: Optional[OpenObserver]):
        self.requester.on_open(handler)

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def did_finish_launching(self, handler: Optional[OpenObserver] = None):
        """Register the observer and schedule the delayed launch trigger."""
        if handler is not None:
            self.on_open(handler)

        if self._launch_handle is not None:
            logger.debug("Launch trigger already scheduled")
            return

        loop = asyncio.get_running_loop()
        self._launch_handle = loop.call_later(LAUNCH_TRIGGER_DELAY, self._fire_launch_trigger)

    def _fire_launch_trigger(self):
        self._launch_handle = None
        self.requester.trigger(TriggerSource.LAUNCH_TIMER)

    def continue_user_activity(self, webpage_url: Optional[str]) -> bool:
        """Handle an activity carrying a Universal Link. False when it has none."""
        if not webpage_url:
            logger.debug("User activity carried no web page URL")
            return False
        self.context.record_universal_link(webpage_url)
        return True

    def open_url(self, url: str) -> bool:
        """Handle a URI-scheme open. False when no link_click_id was found."""
        return self.context.record_link_click_id(url) is not None

    def did_enter_background(self):
        self.requester.mark_background()

    # =========================================================================
    # CLEANUP
    # =========================================================================

    async def shutdown(self):
        """Drop a launch trigger that has not fired, finish attempts, close the client."""
        if self._launch_handle is not None:
            self._launch_handle.cancel()
            self._launch_handle = None
        await self.requester.wait_for_pending()
        await self.requester.close()

    async def __aenter__(self) -> 'AttributionSession':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.shutdown()
