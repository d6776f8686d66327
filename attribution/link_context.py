"""
Snowman Attribution - Link Context
==================================
Transient identifiers captured from whichever launch path fired, plus the
one-shot gate that allows a single open attempt per foreground window.

All fields are guarded by one lock, so an identifier written by a late
trigger can never interleave with the snapshot taken at payload time.
"""

import logging
import threading
from enum import Enum
from typing import Callable, Optional, Tuple
from urllib.parse import parse_qs, urlsplit

from core.exceptions import InvalidLinkException

logger = logging.getLogger(__name__)

LINK_CLICK_ID_PARAM = "link_click_id"


class TriggerSource(Enum):
    """Entry points that may start an open attempt."""
    LAUNCH_TIMER = "launch_timer"
    UNIVERSAL_LINK = "universal_link"
    URI_SCHEME = "uri_scheme"
    MANUAL = "manual"


def extract_link_click_id(url: str) -> str:
    """
    Pull the ``link_click_id`` query parameter out of a URI-scheme URL.

    Raises:
        InvalidLinkException: URL is malformed, has no query string,
            or does not carry a non-empty ``link_click_id``.
    """
    try:
        parts = urlsplit(url)
    except ValueError as e:
        raise InvalidLinkException(url, "Invalid URL", cause=e)

    if not parts.scheme:
        raise InvalidLinkException(url, "Invalid URL")
    if not parts.query:
        raise InvalidLinkException(url, "No query items present")

    values = parse_qs(parts.query).get(LINK_CLICK_ID_PARAM)
    if not values:
        raise InvalidLinkException(
            url,
            f"{LINK_CLICK_ID_PARAM} not found in the URL",
            parameter=LINK_CLICK_ID_PARAM,
        )
    return values[0]


class LinkContext:
    """
    Identifier store and gate for one app process.

    A listener (normally ``OpenAttributionRequester.trigger``) is signalled
    after every successful identifier write.
    """

    def __init__(self, listener: Optional[Callable[[TriggerSource], object]] = None):
        self._lock = threading.Lock()
        self._link_click_id: Optional[str] = None
        self._universal_link: Optional[str] = None
        self._open_triggered = False
        self.listener = listener

    # =========================================================================
    # READ-ONLY VIEWS
    # =========================================================================

    @property
    def link_click_id(self) -> Optional[str]:
        with self._lock:
            return self._link_click_id

    @property
    def universal_link(self) -> Optional[str]:
        with self._lock:
            return self._universal_link

    @property
    def open_triggered(self) -> bool:
        with self._lock:
            return self._open_triggered

    # =========================================================================
    # TRIGGER ENTRY POINTS
    # =========================================================================

    def record_universal_link(self, url: str):
        """Store a Universal Link (overwriting any prior one) and signal."""
        with self._lock:
            self._universal_link = url
        logger.info(f"Recorded universal link: {url}")
        self._signal(TriggerSource.UNIVERSAL_LINK)

    def record_link_click_id(self, url: str) -> Optional[str]:
        """
        Store the ``link_click_id`` carried by a URI-scheme URL and signal.

        Returns the extracted id, or None when the URL carries none (only
        a diagnostic log is emitted in that case).
        """
        try:
            link_click_id = extract_link_click_id(url)
        except InvalidLinkException as e:
            logger.warning(f"Skipping URI-scheme open: {e.message}", extra={"url": url})
            return None

        with self._lock:
            self._link_click_id = link_click_id
        logger.info(f"Extracted link_click_id: {link_click_id}")
        self._signal(TriggerSource.URI_SCHEME)
        return link_click_id

    def mark_background(self):
        """Reopen the gate. Stored identifiers are kept."""
        with self._lock:
            self._open_triggered = False
        logger.debug("Open gate reset after entering background")

    # =========================================================================
    # REQUESTER SIDE
    # =========================================================================

    def try_open_gate(self) -> bool:
        """Test-and-set the gate. True only for the first caller per window."""
        with self._lock:
            if self._open_triggered:
                return False
            self._open_triggered = True
            return True

    def snapshot_identifiers(self) -> Tuple[Optional[str], Optional[str]]:
        """Return ``(universal_link, link_click_id)`` as one consistent pair."""
        with self._lock:
            return self._universal_link, self._link_click_id

    def clear_identifiers(
        self,
        universal_link: Optional[str],
        link_click_id: Optional[str]
    ):
        """
        Clear the identifiers that went into a request.

        A field is only cleared while it still holds the value that was
        sent; one overwritten in the meantime is kept for the next window.
        """
        with self._lock:
            if self._universal_link == universal_link:
                self._universal_link = None
            if self._link_click_id == link_click_id:
                self._link_click_id = None

    def _signal(self, source: TriggerSource):
        if self.listener is not None:
            self.listener(source)
