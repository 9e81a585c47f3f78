# browser/last_page.py
"""
Remembers the page the browser showed when a run ended, keyed by the
application URL, so the next run reopens it instead of the context root.
"""

import logging
import os
import threading
from pathlib import Path
from typing import Dict, Optional

import yaml

logger = logging.getLogger("serverpilot.browser")

DEFAULT_STORE_PATH = Path(os.path.expanduser("~")) / ".serverpilot" / "last_pages.yaml"


class LastPageStore:
    def __init__(self, path: Optional[str] = None):
        self.path = Path(path) if path else DEFAULT_STORE_PATH
        self._lock = threading.Lock()

    def _load(self) -> Dict[str, str]:
        try:
            data = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except FileNotFoundError:
            return {}
        except (OSError, yaml.YAMLError) as e:
            logger.debug("Unable to read %s: %s", self.path, e)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items() if v}

    def get(self, app_url: str, default: Optional[str] = None) -> Optional[str]:
        with self._lock:
            return self._load().get(app_url, default)

    def save(self, app_url: str, page_url: str) -> None:
        with self._lock:
            pages = self._load()
            pages[app_url] = page_url
            try:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self.path.write_text(yaml.safe_dump(pages, default_flow_style=False), encoding="utf-8")
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Unable to remember the last page of %s: %s", app_url, e)
