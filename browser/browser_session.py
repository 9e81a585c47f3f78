# browser/browser_session.py
"""
Browser capability used by the orchestrator and the log triggers.

Only three things are needed from a browser: open a URL, refresh it after a
redeploy, and (best-effort) show a status in the page title. The system
browser can do the first two through `webbrowser`; it has no notion of a
title, so update_title only logs.
"""

import logging
import threading
import webbrowser
from typing import Optional

logger = logging.getLogger("serverpilot.browser")


class BrowserSession:
    """Opaque browser handle. Subclasses must not raise from refresh/update_title."""

    def open(self, url: str) -> None:
        raise NotImplementedError

    def refresh(self) -> None:
        raise NotImplementedError

    def update_title(self, title: str) -> None:
        raise NotImplementedError

    def close(self) -> None:
        pass

    @property
    def current_url(self) -> Optional[str]:
        return None


class WebBrowserSession(BrowserSession):
    def __init__(self, controller=None):
        self._controller = controller or webbrowser
        self._url: Optional[str] = None
        self._closed = False
        self._lock = threading.Lock()

    @property
    def current_url(self) -> Optional[str]:
        return self._url

    def open(self, url: str) -> None:
        with self._lock:
            self._url = url
            self._closed = False
        logger.info("Opening %s", url)
        if not self._controller.open(url, new=2):
            logger.warning("No browser available to open %s", url)

    def refresh(self) -> None:
        with self._lock:
            url = None if self._closed else self._url
        if not url:
            return
        try:
            # Reuse the existing window where the platform allows it
            self._controller.open(url, new=0)
        except Exception as e:
            logger.debug("Error in refreshing browser: %s", e)

    def update_title(self, title: str) -> None:
        logger.debug("Browser title: %s", title)

    def close(self) -> None:
        with self._lock:
            self._closed = True


def create_browser_session(enabled: bool = True) -> Optional[BrowserSession]:
    if not enabled:
        return None
    return WebBrowserSession()
