"""
Snowman Attribution - User Agent Resolution
Browser-equivalent user agent lookup, resolved fresh for every attempt.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# completion(result, error)
Completion = Callable[[Any, Optional[BaseException]], None]


class UserAgentResolver(ABC):
    """Resolves the user agent string on the event loop thread."""

    @abstractmethod
    async def resolve(self) -> Optional[str]:
        """Return the user agent, or None when it cannot be determined."""
        pass


class StaticUserAgentResolver(UserAgentResolver):
    """Always answers with the same value (or None)."""

    def __init__(self, user_agent: Optional[str] = None):
        self.user_agent = user_agent

    async def resolve(self) -> Optional[str]:
        return self.user_agent


class CallbackUserAgentResolver(UserAgentResolver):
    """
    Adapts a callback-style web rendering component.

    ``evaluate`` is invoked on the event loop with a completion callback
    and must eventually call ``completion(result, error)``; it may do so
    from any thread. Errors, non-string results and timeouts all yield
    None so the open request simply goes out without a user agent.

    Usage:
        def evaluate(completion):
            web_view.evaluate_javascript("navigator.userAgent", completion)

        resolver = CallbackUserAgentResolver(evaluate, timeout=5.0)
        user_agent = await resolver.resolve()
    """

    def __init__(self, evaluate: Callable[[Completion], None], timeout: float = 5.0):
        self.evaluate = evaluate
        self.timeout = timeout

    async def resolve(self) -> Optional[str]:
        loop = asyncio.get_running_loop()
        future: asyncio.Future = loop.create_future()

        def _settle(result: Any, error: Optional[BaseException]):
            if future.done():
                return
            if error is not None:
                future.set_exception(error)
            else:
                future.set_result(result)

        def completion(result: Any, error: Optional[BaseException] = None):
            loop.call_soon_threadsafe(_settle, result, error)

        try:
            self.evaluate(completion)
            result = await asyncio.wait_for(future, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out fetching user agent after {self.timeout}s")
            return None
        except Exception as e:
            logger.warning(f"Error fetching user agent: {e}")
            return None

        if not isinstance(result, str):
            logger.warning(f"Error fetching user agent: unexpected result {result!r}")
            return None
        return result
