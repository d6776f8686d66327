"""
Snowman Attribution - Open Attribution Requester
================================================
Coalesces launch triggers into a single ``v1/open`` call per foreground
window, then caches the referring params and hands them to the observer.

Attempt sequence:
    1. Resolve the user agent on the event loop
    2. Collect device metadata and build the body on a worker thread
    3. Clear the consumed link identifiers and POST the body
    4. Parse the JSON response and notify the observer on the event loop

Failures are logged and end the attempt; the gate stays closed until the
app enters the background again. ``open()`` returns an ``OpenResult`` for
callers that want to react to a failure themselves.
"""

import asyncio
import contextvars
import functools
import logging
import time
import uuid
from concurrent.futures import Executor, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Optional, Set, Tuple

import httpx

from core.config import AttributionConfig
from core.exceptions import (
    AttributionException,
    HTTPStatusException,
    PayloadSerializationException,
    ResponseDecodeException,
    TransportException,
    format_exception_for_logging,
)
from core.logging import get_logger, reset_window_context, set_window_context

from .link_context import LinkContext, TriggerSource
from .payload import (
    DeviceInfoProvider,
    PlatformDeviceInfoProvider,
    build_open_payload,
    serialize_payload,
)
from .user_agent import StaticUserAgentResolver, UserAgentResolver

logger = logging.getLogger(__name__)
api_log = get_logger(__name__)

# Worker thread for payload assembly
_executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="attribution")

OpenObserver = Callable[[Dict[str, Any]], None]


# =============================================================================
# ENUMS
# =============================================================================

class RequesterState(Enum):
    """Lifecycle of one foreground window."""
    IDLE = "idle"
    PENDING = "pending"
    COMPLETED = "completed"


class OpenStatus(Enum):
    """Outcome of one open attempt."""
    SUCCESS = "success"
    SKIPPED = "skipped"
    SERIALIZATION_ERROR = "serialization_error"
    TRANSPORT_ERROR = "transport_error"
    HTTP_ERROR = "http_error"
    DECODE_ERROR = "decode_error"
    INTERNAL_ERROR = "internal_error"


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class OpenResult:
    """Result of a single open attempt."""
    status: OpenStatus
    window_id: Optional[str] = None
    trigger_source: Optional[TriggerSource] = None
    params: Optional[Dict[str, Any]] = None
    status_code: Optional[int] = None
    duration_ms: Optional[float] = None
    error: Optional[AttributionException] = None

    @property
    def success(self) -> bool:
        return self.status == OpenStatus.SUCCESS


# =============================================================================
# REQUESTER
# =============================================================================

class OpenAttributionRequester:
    """
    Sends at most one open request per foreground window.

    Usage:
        requester = OpenAttributionRequester(AttributionConfig.from_env().validate())
        requester.on_open(lambda params: print(params))

        requester.trigger(TriggerSource.LAUNCH_TIMER)
        await requester.wait_for_pending()
        print(requester.latest_referring_params)
    """

    def __init__(
        self,
        config: AttributionConfig,
        context: Optional[LinkContext] = None,
        user_agent_resolver: Optional[UserAgentResolver] = None,
        device_info_provider: Optional[DeviceInfoProvider] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        executor: Optional[Executor] = None
    ):
        self.config = config
        self.context = context or LinkContext()
        self.context.listener = self.trigger
        self.user_agent_resolver = user_agent_resolver or StaticUserAgentResolver()
        self.device_info_provider = device_info_provider or PlatformDeviceInfoProvider()

        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient()
        self._executor = executor or _executor

        self.handler: Optional[OpenObserver] = None
        self.latest_referring_params: Optional[Dict[str, Any]] = None

        self._in_flight = 0
        self._tasks: Set[asyncio.Task] = set()

    # =========================================================================
    # STATE
    # =========================================================================

    @property
    def state(self) -> RequesterState:
        if self._in_flight:
            return RequesterState.PENDING
        if self.context.open_triggered:
            return RequesterState.COMPLETED
        return RequesterState.IDLE

    def on_open(self, handler: Optional[OpenObserver]):
        """Register the observer that receives parsed referring params."""
        self.handler = handler

    def mark_background(self):
        """Reopen the window so the next trigger sends a new open request."""
        previous = self.state
        self.context.mark_background()
        logger.info(f"Entered background: {previous.value} -> {self.state.value}")

    # =========================================================================
    # TRIGGERS
    # =========================================================================

    def trigger(self, source: TriggerSource = TriggerSource.MANUAL) -> Optional[asyncio.Task]:
        """
        Start an open attempt unless one already ran in this window.

        Must be called from the event loop thread. Returns the scheduled
        task, or None when the gate was already closed.
        """
        loop = asyncio.get_running_loop()
        if not self.context.try_open_gate():
            logger.debug(f"Open already triggered in this window, ignoring {source.value}")
            return None

        self._in_flight += 1
        task = loop.create_task(self._run(source))
        self._tasks.add(task)
        task.add_done_callback(self._on_task_done)
        return task

    async def open(self, source: TriggerSource = TriggerSource.MANUAL) -> OpenResult:
        """Gate-checked attempt that reports its outcome to the caller."""
        if not self.context.try_open_gate():
            logger.debug(f"Open already triggered in this window, skipping {source.value}")
            return OpenResult(status=OpenStatus.SKIPPED, trigger_source=source)

        self._in_flight += 1
        return await self._run(source)

    async def wait_for_pending(self):
        """Wait until every scheduled attempt has finished."""
        while self._tasks:
            await asyncio.wait(list(self._tasks))

    def _on_task_done(self, task: asyncio.Task):
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                f"Open attempt crashed: {type(exc).__name__}: {exc}",
                extra={"error": format_exception_for_logging(exc)}
            )

    # =========================================================================
    # ATTEMPT
    # =========================================================================

    async def _run(self, source: TriggerSource) -> OpenResult:
        try:
            return await self._attempt(source)
        finally:
            self._in_flight -= 1

    async def _attempt(self, source: TriggerSource) -> OpenResult:
        window_id = uuid.uuid4().hex
        tokens = set_window_context(window_id, source.value)
        try:
            logger.info(f"Open attempt started by {source.value}")

            try:
                content, identifiers = await self._prepare()
            except PayloadSerializationException as e:
                logger.error(f"Failed to serialize JSON: {e}")
                return OpenResult(
                    status=OpenStatus.SERIALIZATION_ERROR,
                    window_id=window_id,
                    trigger_source=source,
                    error=e,
                )
            except Exception as e:
                error = AttributionException(
                    "Failed to prepare open request", cause=e
                ).with_traceback(e.__traceback__)
                logger.error(
                    str(error),
                    extra={"error": format_exception_for_logging(error)}
                )
                return OpenResult(
                    status=OpenStatus.INTERNAL_ERROR,
                    window_id=window_id,
                    trigger_source=source,
                    error=error,
                )

            result = await self._send(content, identifiers)
            result.window_id = window_id
            result.trigger_source = source
            return result
        finally:
            reset_window_context(tokens)

    async def _prepare(self) -> Tuple[bytes, Tuple[Optional[str], Optional[str]]]:
        user_agent = await self.user_agent_resolver.resolve()

        loop = asyncio.get_running_loop()
        prepare = functools.partial(
            contextvars.copy_context().run, self._prepare_request, user_agent
        )
        return await loop.run_in_executor(self._executor, prepare)

    def _prepare_request(self, user_agent: Optional[str]) -> Tuple[bytes, Tuple[Optional[str], Optional[str]]]:
        """Collect metadata and encode the body. Runs on the worker thread."""
        device = self.device_info_provider.get_device_info()
        universal_link, link_click_id = self.context.snapshot_identifiers()

        body = build_open_payload(
            self.config,
            device,
            user_agent=user_agent,
            universal_link=universal_link,
            link_click_id=link_click_id,
        )
        return serialize_payload(body), (universal_link, link_click_id)

    async def _send(
        self,
        content: bytes,
        identifiers: Tuple[Optional[str], Optional[str]]
    ) -> OpenResult:
        url = self.config.api_url

        # The identifiers are spent once the request goes out
        self.context.clear_identifiers(*identifiers)

        start_time = time.time()
        try:
            response = await self.http_client.post(
                url,
                content=content,
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as e:
            error = TransportException(url, cause=e)
            logger.error(f"Error making POST request: {e}")
            return OpenResult(status=OpenStatus.TRANSPORT_ERROR, error=error)

        duration_ms = (time.time() - start_time) * 1000
        api_log.api_call(
            "branch", "POST /v1/open",
            duration_ms=int(duration_ms),
            status=str(response.status_code),
        )

        if not 200 <= response.status_code < 300:
            error = HTTPStatusException(response.status_code, response.text)
            logger.error(
                f"Server error: HTTP {response.status_code}",
                extra={"status_code": response.status_code, "duration_ms": duration_ms}
            )
            return OpenResult(
                status=OpenStatus.HTTP_ERROR,
                status_code=response.status_code,
                duration_ms=duration_ms,
                error=error,
            )

        try:
            params = response.json()
        except ValueError as e:
            error = ResponseDecodeException(cause=e)
            logger.error(f"Error parsing response JSON: {e}")
            return OpenResult(
                status=OpenStatus.DECODE_ERROR,
                status_code=response.status_code,
                duration_ms=duration_ms,
                error=error,
            )

        if not isinstance(params, dict):
            error = ResponseDecodeException(
                f"Expected a JSON object, got {type(params).__name__}"
            )
            logger.error(error.message)
            return OpenResult(
                status=OpenStatus.DECODE_ERROR,
                status_code=response.status_code,
                duration_ms=duration_ms,
                error=error,
            )

        logger.info(
            f"Open succeeded: HTTP {response.status_code} in {duration_ms:.0f}ms",
            extra={"status_code": response.status_code, "duration_ms": duration_ms}
        )
        self.latest_referring_params = params
        self._notify(params)

        return OpenResult(
            status=OpenStatus.SUCCESS,
            params=params,
            status_code=response.status_code,
            duration_ms=duration_ms,
        )

    def _notify(self, params: Dict[str, Any]):
        if self.handler is None:
            return
        try:
            self.handler(params)
        except Exception:
            logger.exception("Open observer raised")

    # =========================================================================
    # CLEANUP
    # =========================================================================

    async def close(self):
        """Close the HTTP client if this requester created it."""
        if self._owns_client:
            await self.http_client.aclose()

    async def __aenter__(self) -> 'OpenAttributionRequester':
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.wait_for_pending()
        await self.close()
